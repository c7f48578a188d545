"""Content Guard: validation and sanitization of user text."""

from .lib import (
    CONTROL_CHARS,
    GuardResult,
    check,
    preview,
    sanitize,
    validate,
)

__all__ = [
    "GuardResult",
    "validate",
    "sanitize",
    "check",
    "preview",
    "CONTROL_CHARS",
]
