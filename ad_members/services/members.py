from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional
import logging

from ..ad import (
    ADClient,
    DirectorySession,
    DirectoryEntry,
    GroupNotFound,
    SearchResult,
    UnsupportedMatchingRule,
    resolve_users,
    resolve_users_by_chained_filter,
)

logger = logging.getLogger(__name__)

STRATEGY_AUTO = "auto"
STRATEGY_CHAINED = "chained"
STRATEGY_RECURSIVE = "recursive"
STRATEGIES = (STRATEGY_AUTO, STRATEGY_CHAINED, STRATEGY_RECURSIVE)


@dataclass
class MembershipReport:
    group_dn: str
    strategy: str
    names: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.names)


def aggregate(
    results: Iterable[SearchResult],
    emit: Optional[Callable[[str], None]] = None,
    names: Optional[list[str]] = None,
) -> tuple[list[str], int]:
    """Drain a resolver stream, emitting each short name.

    The stream is always consumed to the end so paged queries release
    their server-side cursors. Names are appended to `names` when given,
    so a caller sees the partial list if the stream fails midway.
    """
    if names is None:
        names = []
    for result in results:
        sam = result.sam
        names.append(sam)
        if emit is not None:
            emit(sam)
    return names, len(names)


def _locate_group(root: DirectorySession, group_dn: str | None, group_name: str | None) -> DirectoryEntry:
    if group_dn:
        return root.read_entry(group_dn)
    if group_name:
        return root.find_group(group_name)
    raise GroupNotFound("Neither group DN nor group name given")


def _run(root: DirectorySession, group: DirectoryEntry, strategy: str, report: MembershipReport,
         emit: Optional[Callable[[str], None]]) -> None:
    if strategy == STRATEGY_RECURSIVE:
        stream = resolve_users(root, group.dn, group.relative_id)
    else:
        stream = resolve_users_by_chained_filter(root, group)

    report.strategy = strategy
    aggregate(stream, emit, names=report.names)


def resolve_group_members(
    client: ADClient,
    group_dn: str | None = None,
    group_name: str | None = None,
    strategy: str = STRATEGY_AUTO,
    emit: Optional[Callable[[str], None]] = None,
) -> MembershipReport:
    """Resolve all users of a group inside one directory session.

    An unknown group gives an empty report. With the "auto" strategy the
    chained filter is tried first and the recursive walk is used when the
    server rejects the matching rule.
    """
    strategy = (strategy or STRATEGY_AUTO).strip().lower()
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy {strategy!r}, expected one of {', '.join(STRATEGIES)}")

    report = MembershipReport(group_dn=group_dn or "", strategy=strategy)
    with client.session() as root:
        try:
            group = _locate_group(root, group_dn, group_name)
        except GroupNotFound as e:
            logger.warning("Group not found: %s", e)
            return report
        report.group_dn = group.dn

        if strategy != STRATEGY_AUTO:
            _run(root, group, strategy, report, emit)
        else:
            try:
                _run(root, group, STRATEGY_CHAINED, report, emit)
            except UnsupportedMatchingRule as e:
                if report.names:
                    raise
                logger.warning("Chained membership filter rejected (%s), falling back to recursive walk", e)
                _run(root, group, STRATEGY_RECURSIVE, report, emit)

    logger.info("%d users resolved for %s (%s)", report.total, report.group_dn, report.strategy)
    return report
