from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..ad_utils import domain_to_base_dn, build_dc_fqdn
from .utils import relative_id_from_sid, sid_to_str


@dataclass
class ADConfig:
    dc_short: str
    domain: str
    port: int
    use_ssl: bool
    starttls: bool
    bind_username: str
    bind_password: str
    tls_validate: bool = False
    ca_cert_file: str = ""
    search_base: str = ""
    timeout: int = 30
    page_size: int = 1000

    @property
    def host(self) -> str:
        return build_dc_fqdn(self.dc_short, self.domain)

    @property
    def base_dn(self) -> str:
        # An explicit search root wins over the one derived from the domain.
        explicit = (self.search_base or "").strip()
        if explicit:
            return explicit
        return domain_to_base_dn(self.domain)

    @property
    def bind_principal(self) -> str:
        u = (self.bind_username or "").strip()
        d = (self.domain or "").strip().strip(".")
        if not u:
            return ""
        if "@" in u or "=" in u:
            return u
        return f"{u}@{d}" if d else u


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass(frozen=True)
class SearchResult:
    """Projection of a directory entry returned by a search.

    `attributes` maps attribute name to a list of values; single-valued
    attributes live at index 0.
    """

    dn: str
    attributes: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, item: dict) -> "SearchResult":
        attrs = item.get("attributes") or {}
        normalized = {str(k): _as_list(v) for k, v in attrs.items()}
        return cls(dn=str(item.get("dn") or ""), attributes=normalized)

    def values(self, name: str) -> list:
        if name in self.attributes:
            return self.attributes[name]
        # ldap3 keeps the server's casing; lookups are case-insensitive in LDAP.
        lname = name.lower()
        for k, v in self.attributes.items():
            if k.lower() == lname:
                return v
        return []

    def first(self, name: str, default: Any = "") -> Any:
        vals = self.values(name)
        return vals[0] if vals else default

    @property
    def sam(self) -> str:
        return str(self.first("sAMAccountName", "") or "")

    @property
    def distinguished_name(self) -> str:
        return str(self.first("distinguishedName", "") or self.dn)

    @property
    def object_guid(self) -> str:
        return str(self.first("objectGUID", "") or "")

    @property
    def object_sid(self) -> str:
        return sid_to_str(self.first("objectSid", None))

    @property
    def identity_key(self) -> str:
        """Uppercase short name, falling back to the DN for nameless entries."""
        return (self.sam or self.distinguished_name).upper()


@dataclass
class DirectoryEntry:
    """A group or user node read from the directory by DN."""

    dn: str
    object_classes: List[str]
    sam: str = ""
    object_sid: str = ""
    primary_group_id: Optional[int] = None

    @classmethod
    def from_result(cls, result: SearchResult) -> "DirectoryEntry":
        pgid = result.first("primaryGroupID", None)
        try:
            pgid = int(pgid) if pgid not in (None, "") else None
        except (TypeError, ValueError):
            pgid = None
        return cls(
            dn=result.distinguished_name,
            object_classes=[str(c) for c in result.values("objectClass")],
            sam=result.sam,
            object_sid=result.object_sid,
            primary_group_id=pgid,
        )

    @property
    def is_group(self) -> bool:
        return "group" in (c.lower() for c in self.object_classes)

    @property
    def relative_id(self) -> Optional[int]:
        return relative_id_from_sid(self.object_sid)


@dataclass
class ResolutionContext:
    """Visited identifiers for one top-level resolution.

    Never shared between calls; both sets only grow.
    """

    groups: set[str] = field(default_factory=set)
    group_dns: set[str] = field(default_factory=set)
    users: set[str] = field(default_factory=set)

    def seed_group(self, dn: str, key: str = "") -> None:
        """Mark the root group visited before the walk starts."""
        if dn:
            self.group_dns.add(dn.upper())
        if key:
            self.groups.add(key.upper())

    def mark_group(self, key: str, dn: str = "") -> bool:
        """Return True the first time a group is seen, False afterwards."""
        key = (key or dn or "").upper()
        ndn = (dn or "").upper()
        if key in self.groups or (ndn and ndn in self.group_dns):
            return False
        self.groups.add(key)
        if ndn:
            self.group_dns.add(ndn)
        return True

    def mark_user(self, key: str) -> bool:
        key = (key or "").upper()
        if key in self.users:
            return False
        self.users.add(key)
        return True
