from __future__ import annotations

from contextlib import closing, contextmanager
from typing import Any, Iterator, Optional
import logging
import ssl

from ldap3 import (
    Server,
    Connection,
    ALL,
    SUBTREE,
    BASE,
    Tls,
)
from ldap3.core.exceptions import LDAPException, LDAPNoSuchObjectResult

from .controls import PAGED_RESULTS_OID, server_sort_control
from .errors import DirectoryUnavailable, GroupNotFound, translate_ldap_error
from .models import ADConfig, DirectoryEntry, SearchResult
from .utils import escape_ldap_filter_value

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
SORT_ATTRIBUTE = "sAMAccountName"
ENTRY_ATTRIBUTES = ["distinguishedName", "objectClass", "objectSid", "sAMAccountName", "primaryGroupID"]


class DirectorySession:
    """A bound connection plus the search root used for every query."""

    def __init__(self, conn: Connection, base_dn: str, page_size: int = PAGE_SIZE) -> None:
        self.conn = conn
        self.base_dn = base_dn
        self.page_size = page_size

    def search(
        self,
        search_filter: str,
        attributes: list[str],
        sort_attribute: Optional[str] = SORT_ATTRIBUTE,
        reverse: bool = False,
        page_size: Optional[int] = None,
        size_limit: int = 0,
        search_base: Optional[str] = None,
    ) -> Iterator[SearchResult]:
        """Lazy paged search over the subtree of the search root.

        size_limit=0 means unlimited; paging is always on since AD silently
        truncates unpaged results. Closing the iterator early abandons the
        server-side cursor.
        """
        base = search_base or self.base_dn
        paged_size = page_size or self.page_size
        controls = [server_sort_control(sort_attribute, reverse)] if sort_attribute else None
        cookie: Any = None
        emitted = 0
        page_no = 0
        done = False

        try:
            while True:
                page_no += 1
                try:
                    self.conn.search(
                        search_base=base,
                        search_filter=search_filter,
                        search_scope=SUBTREE,
                        attributes=attributes,
                        size_limit=size_limit,
                        controls=controls,
                        paged_size=paged_size,
                        paged_cookie=cookie,
                    )
                except LDAPException as e:
                    cookie = None
                    raise translate_ldap_error(e) from e

                # Copy the page before yielding: callers may run nested
                # searches on the same connection, which overwrite response.
                page = [
                    SearchResult.from_response(item)
                    for item in (self.conn.response or [])
                    if item.get("type") == "searchResEntry"
                ]
                res = self.conn.result or {}
                cookie = (
                    ((res.get("controls") or {}).get(PAGED_RESULTS_OID) or {})
                    .get("value", {})
                    .get("cookie")
                )
                logger.debug("page %d: %d entries for %s", page_no, len(page), search_filter)

                for result in page:
                    yield result
                    emitted += 1
                    if size_limit and emitted >= size_limit:
                        return

                if not cookie:
                    done = True
                    return
        finally:
            if cookie and not done:
                self._abandon(base, search_filter, cookie)

    def _abandon(self, base: str, search_filter: str, cookie: Any) -> None:
        # RFC 2696: a zero page size with the cookie releases the cursor.
        try:
            self.conn.search(
                search_base=base,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=[],
                paged_size=0,
                paged_cookie=cookie,
            )
        except LDAPException as e:
            logger.debug("Failed to abandon paged search for %s: %s", search_filter, e)

    def read_entry(self, dn: str) -> DirectoryEntry:
        dn = (dn or "").strip()
        if not dn:
            raise GroupNotFound("Empty DN")
        try:
            self.conn.search(
                search_base=dn,
                search_filter="(objectClass=*)",
                search_scope=BASE,
                attributes=ENTRY_ATTRIBUTES,
            )
        except LDAPNoSuchObjectResult as e:
            raise GroupNotFound(f"No entry with DN {dn}") from e
        except LDAPException as e:
            raise translate_ldap_error(e) from e

        for item in self.conn.response or []:
            if item.get("type") == "searchResEntry":
                return DirectoryEntry.from_result(SearchResult.from_response(item))
        raise GroupNotFound(f"No entry with DN {dn}")

    def find_group(self, name: str) -> DirectoryEntry:
        """Locate a group by its short (sAMAccountName) name."""
        name = (name or "").strip()
        if not name:
            raise GroupNotFound("Empty group name")
        flt = f"(&(objectClass=group)(sAMAccountName={escape_ldap_filter_value(name)}))"
        with closing(self.search(flt, ENTRY_ATTRIBUTES, sort_attribute=None, size_limit=1)) as results:
            for result in results:
                return DirectoryEntry.from_result(result)
        raise GroupNotFound(f"Group {name} not found under {self.base_dn}")


class ADClient:
    def __init__(self, cfg: ADConfig) -> None:
        self.cfg = cfg

        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_REQUIRED if cfg.tls_validate else ssl.CERT_NONE,
        }
        # Apply custom CA only when verification is enabled.
        if cfg.tls_validate and cfg.ca_cert_file:
            tls_kwargs["ca_certs_file"] = cfg.ca_cert_file

        tls = Tls(**tls_kwargs)

        self.server = Server(
            host=cfg.host,
            port=cfg.port,
            use_ssl=cfg.use_ssl,
            get_info=ALL,
            connect_timeout=cfg.timeout,
            tls=tls,
        )

    def _conn(self, user: str, password: str) -> Connection:
        conn = Connection(
            self.server,
            user=user,
            password=password,
            auto_bind=False,
            raise_exceptions=True,
            receive_timeout=self.cfg.timeout,
        )
        conn.open()
        if self.cfg.starttls:
            conn.start_tls()
        return conn

    @contextmanager
    def session(self) -> Iterator[DirectorySession]:
        """Bound connection for one top-level resolution; always unbound on exit."""
        base = self.cfg.base_dn
        if not base:
            raise DirectoryUnavailable("Base DN is empty (check the domain or search base setting).")

        conn: Connection | None = None
        try:
            conn = self._conn(self.cfg.bind_principal, self.cfg.bind_password)
            bound = bool(conn.bind())
        except LDAPException as e:
            self._release(conn)
            raise DirectoryUnavailable(f"Cannot connect to {self.cfg.host}:{self.cfg.port}: {e}") from e
        if not bound:
            res = dict(conn.result or {})
            self._release(conn)
            raise DirectoryUnavailable(f"Bind failed: {res.get('description', 'unknown error')}")

        logger.debug("Bound to %s:%s as %s", self.cfg.host, self.cfg.port, self.cfg.bind_principal)
        try:
            yield DirectorySession(conn, base, page_size=self.cfg.page_size or PAGE_SIZE)
        finally:
            self._release(conn)

    @staticmethod
    def _release(conn: Connection | None) -> None:
        if conn is None:
            return
        try:
            conn.unbind()
        except LDAPException as e:
            logger.debug("unbind failed: %s", e)
