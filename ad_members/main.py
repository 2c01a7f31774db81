"""Command-line runner: print every user of an AD group, nested groups included.

Settings come from the environment (see env_settings.py); flags override them.

Examples:
    ad-group-members --dc dc01 --domain corp.example.com -u svc_reader -g "CN=Staff,OU=Groups,DC=corp,DC=example,DC=com"
    ad-group-members --group-name Staff --strategy recursive
"""
from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .ad import ADClient, DirectoryError
from .env_settings import get_env
from .log_config import setup_logging
from .services import STRATEGIES, ad_cfg_from_env, resolve_group_members

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ad-group-members",
        description="List all users of an Active Directory group, including nested groups.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    conn_group = parser.add_argument_group("Directory")
    conn_group.add_argument("--dc", dest="ad_dc", help="Domain controller (short name, FQDN or IP)")
    conn_group.add_argument("-d", "--domain", dest="ad_domain", help="Domain name (e.g. corp.example.com)")
    conn_group.add_argument("-b", "--search-base", dest="ad_search_base", help="Search root DN (default: from domain)")
    conn_group.add_argument("-u", "--bind-user", dest="ad_bind_user", help="Bind user (sAMAccountName, UPN or DN)")
    conn_group.add_argument("-p", "--bind-password", dest="ad_bind_password", help="Bind password")
    conn_group.add_argument("--port", dest="ad_port", type=int, help="LDAP port")

    target_group = parser.add_argument_group("Target")
    target = target_group.add_mutually_exclusive_group()
    target.add_argument("-g", "--group-dn", help="Distinguished name of the group")
    target.add_argument("-n", "--group-name", help="Short (sAMAccountName) name of the group")
    target_group.add_argument(
        "-s", "--strategy",
        choices=STRATEGIES,
        help="Resolution strategy (default: auto = chained filter, recursive fallback)",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    env = get_env()

    setup_logging(
        level="DEBUG" if args.verbose else env.log_level,
        log_dir=env.log_dir,
        retention_days=env.log_retention_days,
    )

    cfg = ad_cfg_from_env(
        env,
        ad_dc=args.ad_dc,
        ad_domain=args.ad_domain,
        ad_search_base=args.ad_search_base,
        ad_bind_user=args.ad_bind_user,
        ad_bind_password=args.ad_bind_password,
        ad_port=args.ad_port,
    )
    if cfg is None:
        parser.error("AD is not configured: set --dc and --domain (or AD_DC / AD_DOMAIN)")

    group_dn = args.group_dn
    group_name = args.group_name
    if not group_dn and not group_name:
        group_dn, group_name = env.ad_group_dn or None, env.ad_group_name or None
    if not group_dn and not group_name:
        parser.error("No target group: pass --group-dn or --group-name (or AD_GROUP_DN / AD_GROUP_NAME)")

    strategy = (args.strategy or env.resolve_strategy or "auto").strip().lower()
    if strategy not in STRATEGIES:
        parser.error(f"Unknown strategy {strategy!r} (expected one of: {', '.join(STRATEGIES)})")

    try:
        report = resolve_group_members(
            ADClient(cfg),
            group_dn=group_dn,
            group_name=group_name,
            strategy=strategy,
            emit=print,
        )
    except DirectoryError as e:
        logger.error("%s", e)
        return 1

    print(f"\nTotal {report.total} objects were retrieved from AD.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
