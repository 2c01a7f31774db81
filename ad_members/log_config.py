"""Logging setup.

Member names go to stdout, so log records are written to stderr and,
when a log directory is configured, to `<log_dir>/ad_members.log`
rotated at midnight (TimedRotatingFileHandler) and kept for
`retention_days` days.
"""
from __future__ import annotations

import glob
import logging
import os
import sys
import time
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOG_FILE = "ad_members.log"

# Handlers we installed, removed again on reconfiguration.
_file_handler: logging.Handler | None = None
_console_handler: logging.Handler | None = None


def setup_logging(
    level: str = "INFO",
    log_dir: str = "",
    retention_days: int = 30,
) -> None:
    """Configure the root logger: stderr handler plus optional rotating file."""
    global _file_handler, _console_handler

    level_str = (level or "INFO").strip().upper()
    if level_str not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        level_str = "INFO"
    log_level = getattr(logging, level_str, logging.INFO)

    retention_days = max(1, min(365, int(retention_days or 30)))

    root = logging.getLogger()

    if _file_handler and _file_handler in root.handlers:
        root.removeHandler(_file_handler)
        _file_handler.close()
    _file_handler = None
    if _console_handler and _console_handler in root.handlers:
        root.removeHandler(_console_handler)

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    _console_handler = ch
    root.addHandler(ch)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(
            os.path.join(log_dir, _LOG_FILE),
            when="midnight",
            interval=1,
            backupCount=retention_days,
            encoding="utf-8",
            utc=True,
        )
        fh.suffix = "%Y-%m-%d"
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        _file_handler = fh
        root.addHandler(fh)
        _cleanup_old_logs(log_dir, retention_days)

    root.setLevel(log_level)

    # ldap3 is chatty at DEBUG (full BER dumps).
    logging.getLogger("ldap3").setLevel(max(log_level, logging.WARNING))

    logging.getLogger("ad_members").debug(
        "Logging configured: level=%s, dir=%s, retention=%d days",
        level_str, log_dir or "-", retention_days,
    )


def _cleanup_old_logs(log_dir: str, retention_days: int) -> None:
    """Delete rotated log files older than retention_days."""
    cutoff = time.time() - (retention_days * 86400)
    for f in glob.glob(os.path.join(log_dir, _LOG_FILE + ".*")):
        try:
            if os.path.getmtime(f) < cutoff:
                os.remove(f)
        except OSError:
            pass
