"""Service layer: configuration mapping and group member resolution.

Public API:
    - ad_cfg_from_env()
    - resolve_group_members(), aggregate(), MembershipReport
"""

from .ad import ad_cfg_from_env
from .members import MembershipReport, aggregate, resolve_group_members, STRATEGIES

__all__ = ["ad_cfg_from_env", "MembershipReport", "aggregate", "resolve_group_members", "STRATEGIES"]
