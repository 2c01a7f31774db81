"""Small, side-effect free helpers.

Keep this package dependency-light to avoid circular imports.
"""

from .numbers import clamp_int  # noqa: F401
