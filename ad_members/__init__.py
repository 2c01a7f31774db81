"""Resolve the users of an Active Directory group, including nested groups."""

__version__ = "0.1.0"
