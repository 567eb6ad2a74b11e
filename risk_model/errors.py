"""
LifeGuard — Errors
"""


class ValidationError(ValueError):
    """Malformed or missing required input. Always surfaced to the caller."""
