"""Validation and sanitization of text entering the generation pipeline.

Two rules apply:
    - Content longer than the configured maximum is rejected.
    - ASCII control characters (except tab and newline) are stripped.

Control characters are never a violation; they are removed by `sanitize()`.
"""

import re
from dataclasses import dataclass, field

from src.config import EnvVar, get_environment
from src.errors import ContentValidationError

# 0x00-0x08, 0x0B-0x0C, 0x0E-0x1F, 0x7F; keeps \t (0x09), \n (0x0A), \r (0x0D)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

PREVIEW_LENGTH = 100


@dataclass
class GuardResult:
    """Outcome of validating a piece of text.

    Attributes:
        valid: True if no violations were found.
        violations: Human-readable violation messages.
    """

    valid: bool
    violations: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def _max_length(max_length: int | None) -> int:
    return get_environment(EnvVar.MAX_CONTENT_LENGTH, override=max_length)


def validate(text: str, *, max_length: int | None = None) -> GuardResult:
    """Validate text against the Content Guard rules.

    Args:
        text: Text to validate.
        max_length: Override for the configured maximum length.

    Returns:
        GuardResult listing any violations.
    """
    violations: list[str] = []

    if not isinstance(text, str):
        violations.append(f"Content must be a string, got {type(text).__name__}")
        return GuardResult(valid=False, violations=violations)

    limit = _max_length(max_length)
    if len(text) > limit:
        violations.append(f"Content exceeds maximum length of {limit:,} characters")

    return GuardResult(valid=not violations, violations=violations)


def sanitize(text: str) -> str:
    """Remove disallowed control characters.

    Idempotent: sanitize(sanitize(x)) == sanitize(x).
    """
    return CONTROL_CHARS.sub("", text)


def preview(text: str) -> str:
    """Short excerpt of text for error context."""
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH] + "..."


def check(text: str, *, max_length: int | None = None) -> str:
    """Validate and sanitize in one step.

    Args:
        text: Text to check.
        max_length: Override for the configured maximum length.

    Returns:
        The sanitized text.

    Raises:
        ContentValidationError: If the text violates a rule.
    """
    result = validate(text, max_length=max_length)
    if not result.valid:
        context = {"length": len(text), "content": preview(text)} if isinstance(text, str) else {}
        raise ContentValidationError(
            f"Invalid content: {', '.join(result.violations)}",
            violations=result.violations,
            context=context,
        )
    return sanitize(text)


__all__ = [
    "GuardResult",
    "validate",
    "sanitize",
    "check",
    "preview",
    "CONTROL_CHARS",
]
