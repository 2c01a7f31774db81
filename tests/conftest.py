"""In-memory stand-in for an AD domain controller.

FakeConnection mimics the parts of ldap3.Connection the client uses:
search() with paged cookies, `response` / `result`, bind / unbind. Filters
are parsed and evaluated, including the LDAP_MATCHING_RULE_IN_CHAIN
extensible match, so the real filter strings are exercised.
"""
from __future__ import annotations

import re

import pytest
from ldap3 import BASE
from ldap3.core.exceptions import LDAPInappropriateMatchingResult, LDAPNoSuchObjectResult

from ad_members.ad import DirectorySession
from ad_members.ad.controls import MATCHING_RULE_IN_CHAIN_OID, PAGED_RESULTS_OID

DOMAIN_SID = "S-1-5-21-1004336348-1177238915-682003330"
BASE_DN = "DC=corp,DC=example,DC=com"


def group_dn(name: str) -> str:
    return f"CN={name},OU=Groups,{BASE_DN}"


def user_dn(name: str) -> str:
    return f"CN={name},OU=Users,{BASE_DN}"


def norm_dn(dn: str) -> str:
    """Comparison form of a DN: no blanks around separators, uppercase."""
    return re.sub(r"\s*([=,])\s*", r"\1", dn.strip()).upper()


def _unescape(value: str) -> str:
    return (
        value.replace("\\28", "(")
        .replace("\\29", ")")
        .replace("\\2a", "*")
        .replace("\\00", "\x00")
        .replace("\\5c", "\\")
    )


def parse_filter(text: str, i: int = 0):
    if text[i] != "(":
        raise ValueError(f"bad filter at {i}: {text!r}")
    i += 1
    op = text[i]
    if op in "&|":
        i += 1
        children = []
        while text[i] == "(":
            child, i = parse_filter(text, i)
            children.append(child)
        if text[i] != ")":
            raise ValueError(f"bad filter at {i}: {text!r}")
        return (op, children), i + 1
    if op == "!":
        child, i = parse_filter(text, i + 1)
        if text[i] != ")":
            raise ValueError(f"bad filter at {i}: {text!r}")
        return ("!", child), i + 1
    j = text.index(")", i)
    attr, value = text[i:j].split("=", 1)
    return ("=", attr, _unescape(value)), j + 1


class FakeDirectory:
    def __init__(self, supports_chain: bool = True) -> None:
        self.entries: dict[str, dict] = {}
        self.supports_chain = supports_chain
        self._next_rid = 1100

    def _rid(self) -> int:
        self._next_rid += 1
        return self._next_rid

    def add_group(self, name: str, member_of: tuple = (), rid: int | None = None) -> str:
        dn = group_dn(name)
        self.entries[norm_dn(dn)] = {
            "distinguishedName": dn,
            "objectClass": ["top", "group"],
            "sAMAccountName": name,
            "objectGUID": f"{{guid-{name}}}",
            "objectSid": f"{DOMAIN_SID}-{rid or self._rid()}",
            "memberOf": [group_dn(g) for g in member_of],
        }
        return dn

    def add_user(self, name: str, member_of: tuple = (), primary_group_id: int = 513,
                 dn: str | None = None, computer: bool = False) -> str:
        dn = dn or user_dn(name)
        classes = ["top", "person", "organizationalPerson", "user"]
        if computer:
            classes.append("computer")
        self.entries[norm_dn(dn)] = {
            "distinguishedName": dn,
            "objectClass": classes,
            "sAMAccountName": name,
            "objectGUID": f"{{guid-{name}}}",
            "objectSid": f"{DOMAIN_SID}-{self._rid()}",
            "primaryGroupID": primary_group_id,
            "memberOf": [group_dn(g) for g in member_of],
        }
        return dn

    def add_member(self, group: str, member_dn: str) -> None:
        self.entries[norm_dn(member_dn)]["memberOf"].append(group_dn(group))

    def rid_of(self, group: str) -> int:
        return int(self.entries[norm_dn(group_dn(group))]["objectSid"].rsplit("-", 1)[1])

    def _closure(self, entry: dict) -> set[str]:
        seen: set[str] = set()
        todo = [norm_dn(g) for g in entry.get("memberOf", [])]
        while todo:
            g = todo.pop()
            if g in seen:
                continue
            seen.add(g)
            parent = self.entries.get(g)
            if parent:
                todo.extend(norm_dn(p) for p in parent.get("memberOf", []))
        return seen

    def matches(self, node, entry: dict) -> bool:
        kind = node[0]
        if kind == "&":
            return all(self.matches(c, entry) for c in node[1])
        if kind == "|":
            return any(self.matches(c, entry) for c in node[1])
        if kind == "!":
            return not self.matches(node[1], entry)

        _, attr, value = node
        if ":" in attr:
            name, rule = attr.rstrip(":").split(":", 1)
            if rule != MATCHING_RULE_IN_CHAIN_OID or not self.supports_chain:
                raise LDAPInappropriateMatchingResult(
                    result=18, description="inappropriateMatching", response_type="searchResDone"
                )
            return norm_dn(value) in self._closure(entry)
        if attr == "objectClass":
            return value.lower() in (c.lower() for c in entry["objectClass"])
        if attr == "memberOf":
            return norm_dn(value) in (norm_dn(g) for g in entry.get("memberOf", []))
        if attr == "primaryGroupID":
            return str(entry.get("primaryGroupID")) == value
        if value == "*":
            return attr in entry
        return str(entry.get(attr, "")).lower() == value.lower()


class FakeConnection:
    def __init__(self, directory: FakeDirectory, bind_ok: bool = True) -> None:
        self.directory = directory
        self.bind_ok = bind_ok
        self.response = None
        self.result = {}
        self.searches: list[dict] = []
        self.abandoned: list = []
        self.open_cursors: dict = {}
        self.fail_on: dict[str, Exception] = {}
        self.unbound = False
        self._cookie_seq = 0

    def open(self):
        return True

    def start_tls(self):
        return True

    def bind(self):
        if not self.bind_ok:
            self.result = {"result": 49, "description": "invalidCredentials"}
        return self.bind_ok

    def unbind(self):
        self.unbound = True
        return True

    def _set(self, items, cookie=b""):
        self.response = items
        self.result = {
            "result": 0,
            "description": "success",
            "controls": {PAGED_RESULTS_OID: {"value": {"size": 0, "cookie": cookie}}},
        }

    def search(self, search_base, search_filter, search_scope=None, attributes=None,
               size_limit=0, controls=None, paged_size=None, paged_cookie=None, **kwargs):
        self.searches.append({
            "search_base": search_base,
            "search_filter": search_filter,
            "search_scope": search_scope,
            "attributes": attributes,
            "size_limit": size_limit,
            "controls": controls,
            "paged_size": paged_size,
            "paged_cookie": paged_cookie,
        })
        for needle, exc in self.fail_on.items():
            if needle in search_filter:
                raise exc

        if paged_size == 0 and paged_cookie:
            self.abandoned.append(paged_cookie)
            self.open_cursors.pop(paged_cookie, None)
            self._set([])
            return True

        if search_scope == BASE:
            entry = self.directory.entries.get(norm_dn(search_base))
            if entry is None:
                raise LDAPNoSuchObjectResult(result=32, description="noSuchObject", response_type="searchResDone")
            self._set([self._item(entry, attributes)])
            return True

        if paged_cookie:
            pending = self.open_cursors.pop(paged_cookie)
        else:
            tree, _ = parse_filter(search_filter)
            pending = [e for e in self.directory.entries.values() if self.directory.matches(tree, e)]
            if controls:
                pending.sort(key=lambda e: e["sAMAccountName"].lower())
            pending = [self._item(e, attributes) for e in pending]
            if size_limit:
                pending = pending[:size_limit]

        size = paged_size or len(pending) or 1
        page, rest = pending[:size], pending[size:]
        cookie = b""
        if rest:
            self._cookie_seq += 1
            cookie = f"cookie-{self._cookie_seq}".encode()
            self.open_cursors[cookie] = rest
        # Referrals come back interleaved with entries on real servers.
        self._set(page + [{"type": "searchResRef", "uri": ["ldap://other.corp.example.com/"]}], cookie)
        return True

    @staticmethod
    def _item(entry: dict, attributes) -> dict:
        attrs = {a: entry[a] for a in (attributes or []) if a in entry}
        return {"type": "searchResEntry", "dn": entry["distinguishedName"], "attributes": attrs}


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def conn(directory) -> FakeConnection:
    return FakeConnection(directory)


@pytest.fixture
def root(conn) -> DirectorySession:
    return DirectorySession(conn, BASE_DN, page_size=1000)
