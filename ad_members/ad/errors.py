from __future__ import annotations

from ldap3.core.exceptions import (
    LDAPBindError,
    LDAPCommunicationError,
    LDAPException,
    LDAPInappropriateMatchingResult,
    LDAPInvalidCredentialsResult,
    LDAPInvalidFilterError,
    LDAPStartTLSError,
)


class DirectoryError(Exception):
    """Base class for directory failures surfaced to callers."""

    pass


class DirectoryUnavailable(DirectoryError):
    """Connection, TLS or bind failure."""

    pass


class GroupNotFound(DirectoryError):
    """The target group identifier does not resolve to an entry."""

    pass


class UnsupportedMatchingRule(DirectoryError):
    """The server rejected the transitive-membership matching rule.

    Callers should fall back to the recursive strategy.
    """

    pass


class QuerySyntaxError(DirectoryError):
    """A malformed filter was built. Indicates a programming defect."""

    pass


def translate_ldap_error(exc: LDAPException) -> DirectoryError:
    """Map an ldap3 exception to one of the error kinds above."""
    if isinstance(exc, DirectoryError):
        return exc
    if isinstance(exc, LDAPInvalidFilterError):
        return QuerySyntaxError(f"Invalid LDAP filter: {exc}")
    if isinstance(exc, LDAPInappropriateMatchingResult):
        return UnsupportedMatchingRule(f"Matching rule not supported by server: {exc}")
    if isinstance(exc, (LDAPCommunicationError, LDAPBindError, LDAPStartTLSError, LDAPInvalidCredentialsResult)):
        return DirectoryUnavailable(f"Directory unavailable: {exc}")
    return DirectoryError(f"LDAP error: {exc}")
