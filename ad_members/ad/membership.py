"""Nested group membership resolution.

Two strategies yield the same set of user entries for a group:

- `resolve_users` walks subgroups client-side, one query per group.
- `resolve_users_by_chained_filter` asks the server for the transitive
  closure in one query (LDAP_MATCHING_RULE_IN_CHAIN).

Both include users whose membership is only their primaryGroupID.
"""
from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from typing import Iterator, Optional
import logging

from .client import DirectorySession
from .controls import MATCHING_RULE_IN_CHAIN_OID
from .models import DirectoryEntry, ResolutionContext, SearchResult
from .utils import escape_ldap_filter_value

logger = logging.getLogger(__name__)

MEMBER_ATTRIBUTES = ["objectGUID", "sAMAccountName", "distinguishedName"]

_CLASS_FILTERS = {
    "group": "(objectClass=group)",
    "user": "(objectClass=user)(!(objectClass=computer))",
}


def member_filter(group_dn: str, object_class: str, primary_group_id: Optional[int] = None) -> str:
    """Immediate-membership filter; user lookups also exclude computer accounts."""
    try:
        class_filter = _CLASS_FILTERS[object_class]
    except KeyError:
        raise ValueError(f"Unsupported object class: {object_class!r}") from None

    membership = f"(memberOf={escape_ldap_filter_value(group_dn)})"
    if object_class == "user" and primary_group_id is not None:
        membership = f"(|{membership}(primaryGroupID={int(primary_group_id)}))"
    return f"(&{class_filter}{membership})"


def chained_filter(group_dn: str, primary_group_id: Optional[int] = None) -> str:
    """Transitive-membership filter (LDAP_MATCHING_RULE_IN_CHAIN) for users of `group_dn`."""
    membership = f"(memberOf:{MATCHING_RULE_IN_CHAIN_OID}:={escape_ldap_filter_value(group_dn)})"
    if primary_group_id is not None:
        membership += f"(primaryGroupID={int(primary_group_id)})"
    return f"(&(|{membership})(|(&(objectClass=user)(!(objectClass=computer)))))"


def fetch_members(
    root: DirectorySession,
    group_dn: str,
    object_class: str,
    primary_group_id: Optional[int] = None,
) -> Iterator[SearchResult]:
    """Immediate members of `group_dn` of one object class, sorted by sAMAccountName."""
    flt = member_filter(group_dn, object_class, primary_group_id)
    return root.search(flt, MEMBER_ATTRIBUTES, page_size=root.page_size, size_limit=0)


@dataclass
class _Frame:
    group_dn: str
    primary_group_id: Optional[int]
    subgroups: Iterator[SearchResult]


def resolve_users(
    root: DirectorySession,
    group_dn: str,
    primary_group_id: Optional[int] = None,
) -> Iterator[SearchResult]:
    """Depth-first walk yielding every user of `group_dn` exactly once.

    Subgroups are expanded before the users of the same group. The walk
    keeps an explicit stack so deep hierarchies do not hit the recursion
    limit, and terminates on cyclic membership because a group is expanded
    at most once.

    The root entry is read first: its canonical DN and sAMAccountName mark
    it visited, and its RID (unless `primary_group_id` is given) adds users
    whose primaryGroupID points at the root group. Like the server-side
    chain rule, primary group links of nested groups are not followed.
    """
    group = root.read_entry(group_dn)
    if not group.is_group:
        logger.warning("%s is not a group (objectClass=%s)", group.dn, ",".join(group.object_classes))
        return
    if primary_group_id is None:
        primary_group_id = group.relative_id

    ctx = ResolutionContext()
    ctx.seed_group(group.dn, group.sam)
    ctx.seed_group(group_dn)
    stack = [_Frame(group.dn, primary_group_id, fetch_members(root, group.dn, "group"))]
    try:
        while stack:
            frame = stack[-1]
            subgroup = next(frame.subgroups, None)
            if subgroup is not None:
                sub_dn = subgroup.distinguished_name
                if not ctx.mark_group(subgroup.identity_key, sub_dn):
                    logger.debug("skip visited group %s", sub_dn)
                    continue
                logger.debug("descend into %s", sub_dn)
                stack.append(_Frame(sub_dn, None, fetch_members(root, sub_dn, "group")))
                continue

            stack.pop()
            with closing(fetch_members(root, frame.group_dn, "user", frame.primary_group_id)) as users:
                for user in users:
                    if ctx.mark_user(user.identity_key):
                        yield user
    finally:
        for frame in stack:
            frame.subgroups.close()


def resolve_users_by_chained_filter(root: DirectorySession, group: DirectoryEntry) -> Iterator[SearchResult]:
    """All users of `group`, transitively, computed by the server in one query."""
    if not group.is_group:
        logger.warning("%s is not a group (objectClass=%s)", group.dn, ",".join(group.object_classes))
        return

    rid = group.relative_id
    if rid is None:
        logger.warning("No objectSid on %s, primary group members will be missed", group.dn)

    flt = chained_filter(group.dn, rid)
    yield from root.search(flt, MEMBER_ATTRIBUTES, page_size=root.page_size, size_limit=0)
