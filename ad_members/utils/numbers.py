from __future__ import annotations


def clamp_int(
    value,
    *,
    default: int,
    min_v: int | None = None,
    max_v: int | None = None,
) -> int:
    """int(value) clamped to [min_v, max_v]; `default` when not a number."""
    try:
        v = int(value)
    except (TypeError, ValueError):
        v = int(default)

    if min_v is not None:
        v = max(v, int(min_v))
    if max_v is not None:
        v = min(v, int(max_v))
    return v
