"""Active Directory (LDAP) access and nested group membership resolution.

Public API:
    - ADConfig, ADClient, DirectorySession
    - DirectoryEntry, SearchResult
    - fetch_members, resolve_users, resolve_users_by_chained_filter
    - error kinds (DirectoryError and subclasses)
"""

from .models import ADConfig, DirectoryEntry, SearchResult
from .client import ADClient, DirectorySession
from .errors import (
    DirectoryError,
    DirectoryUnavailable,
    GroupNotFound,
    QuerySyntaxError,
    UnsupportedMatchingRule,
)
from .membership import fetch_members, resolve_users, resolve_users_by_chained_filter

__all__ = [
    "ADConfig",
    "ADClient",
    "DirectorySession",
    "DirectoryEntry",
    "SearchResult",
    "DirectoryError",
    "DirectoryUnavailable",
    "GroupNotFound",
    "QuerySyntaxError",
    "UnsupportedMatchingRule",
    "fetch_members",
    "resolve_users",
    "resolve_users_by_chained_filter",
]
