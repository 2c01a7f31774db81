from __future__ import annotations

import re
from typing import Any, Optional

from ldap3.protocol.formatters.formatters import format_sid

_RID_RE = re.compile(r".*-(\d+)$", re.S)


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\5c")
        elif ch == "*":
            out.append("\\2a")
        elif ch == "(":
            out.append("\\28")
        elif ch == ")":
            out.append("\\29")
        elif ch == "\x00":
            out.append("\\00")
        else:
            out.append(ch)
    return "".join(out)


def sid_to_str(value: Any) -> str:
    """Return the string form (S-1-5-21-...) of an objectSid value.

    ldap3 already formats objectSid when the schema is loaded; raw bytes
    come through when it is not.
    """
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        if not value:
            return ""
        return str(format_sid(bytes(value)))
    return str(value).strip()


def relative_id_from_sid(sid: str) -> Optional[int]:
    """Trailing numeric component of a SID (the RID), used by primaryGroupID."""
    m = _RID_RE.match((sid or "").strip())
    if not m:
        return None
    return int(m.group(1))
