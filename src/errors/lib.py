"""Failure taxonomy and classification.

Raw failures are ordinary exceptions raised at the seams where things go
wrong (Content Guard, backend request, Timeout Guard, Retry Policy). Before a
failure reaches the orchestrator it is folded by `classify()` into a
`ClassifiedError`: a closed set of kinds plus a message and a context mapping.

Example:
    >>> err = classify(GenerationRequestError("model unavailable"), content_length=42)
    >>> err.kind
    <ErrorKind.GENERATION: 'generation'>
    >>> err.context
    {'content_length': 42}
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"

# Substrings in a message or exception name that indicate a transport problem
NETWORK_MARKERS: tuple[str, ...] = ("network", "timeout", "fetch")


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to the state machine."""

    VALIDATION = "validation"  # Bad input, fixed by correcting the input
    NETWORK = "network"  # Transient transport failure
    GENERATION = "generation"  # Backend reported a failure
    TIMEOUT = "timeout"  # Timeout Guard deadline fired
    UNKNOWN = "unknown"  # Anything else


class ClassifiedError(BaseModel):
    """A failure value carrying its kind and context.

    Attributes:
        kind: Taxonomy bucket.
        message: Human-readable description.
        context: Extra data about the failure (lengths, deadlines, attempts).
        timestamp: When the failure was classified.
    """

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def retryable(self) -> bool:
        """Whether another attempt could succeed without changing the input."""
        return self.kind is not ErrorKind.VALIDATION

    @property
    def exhausted(self) -> bool:
        """Whether the retry budget for this failure has been spent."""
        return bool(self.context.get("exhausted"))


# =============================================================================
# Raw failures
# =============================================================================


class EditorError(Exception):
    """Base exception for failures raised inside quillstream.

    Attributes:
        context: Extra data about the failure.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})


class ContentValidationError(EditorError):
    """Raised by the Content Guard when input is rejected."""

    def __init__(
        self,
        message: str,
        violations: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.violations = list(violations or [])


class NetworkError(EditorError):
    """Raised when the generation service cannot be reached."""


class GenerationRequestError(EditorError):
    """Raised when the backend fails to produce a continuation.

    Attributes:
        content_length: Length of the seed content sent with the request.
    """

    def __init__(
        self,
        message: str,
        content_length: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.content_length = content_length


class GenerationTimeoutError(EditorError):
    """Raised by the Timeout Guard when its deadline fires.

    Attributes:
        timeout_ms: The deadline that expired.
    """

    def __init__(self, timeout_ms: float, context: dict[str, Any] | None = None):
        super().__init__(
            f"AI generation timed out after {timeout_ms:g}ms",
            {"timeout_ms": timeout_ms, **(context or {})},
        )
        self.timeout_ms = timeout_ms


class RetryExhaustedError(EditorError):
    """Raised by the Retry Policy after its final attempt fails.

    Attributes:
        last_error: Classification of the final attempt's failure.
        attempts: Number of attempts made.
        base_delay_ms: Base delay used for backoff.
    """

    def __init__(self, last_error: ClassifiedError, attempts: int, base_delay_ms: float):
        super().__init__(
            f"Operation failed after {attempts} attempts: {last_error.message}",
            {"attempts": attempts, "base_delay_ms": base_delay_ms},
        )
        self.last_error = last_error
        self.attempts = attempts
        self.base_delay_ms = base_delay_ms


class ClassifiedFailure(EditorError):
    """Exception wrapper for an already classified error.

    Lets a classified failure travel through code that expects exceptions.
    """

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message, error.context)
        self.error = error


# =============================================================================
# Classification
# =============================================================================


def is_network_error(raw: BaseException) -> bool:
    """Check whether a failure looks like a transport problem.

    Matches `NetworkError` instances, stdlib `ConnectionError`, and any
    failure whose message or class name mentions network, timeout or fetch.
    """
    if isinstance(raw, (NetworkError, ConnectionError)):
        return True
    name = type(raw).__name__.lower()
    message = str(raw).lower()
    return any(marker in message or marker in name for marker in NETWORK_MARKERS)


def classify(raw: Any, *, content_length: int | None = None) -> ClassifiedError:
    """Map any raw failure to exactly one ClassifiedError.

    Precedence:
        1. Already classified values pass through.
        2. Timeout Guard deadline -> TIMEOUT.
        3. Content Guard rejection -> VALIDATION.
        4. Exhausted retries -> kind of the last attempt's failure.
        5. Transport markers in message or name -> NETWORK. A backend message
           mentioning "timeout" lands here, not in TIMEOUT.
        6. Backend request failure -> GENERATION.
        7. Everything else -> UNKNOWN.

    Never raises.

    Args:
        raw: Exception, ClassifiedError, string, or any other value.
        content_length: Seed length to record on generation failures.

    Returns:
        The classified error.
    """
    try:
        return _classify(raw, content_length)
    except Exception:
        logger.exception("Error classification failed")
        return ClassifiedError(kind=ErrorKind.UNKNOWN, message=UNKNOWN_ERROR_MESSAGE)


def _classify(raw: Any, content_length: int | None) -> ClassifiedError:
    if isinstance(raw, ClassifiedError):
        return raw
    if isinstance(raw, ClassifiedFailure):
        return raw.error

    if isinstance(raw, GenerationTimeoutError):
        return ClassifiedError(
            kind=ErrorKind.TIMEOUT, message=raw.message, context=raw.context
        )

    if isinstance(raw, ContentValidationError):
        context = dict(raw.context)
        if raw.violations:
            context.setdefault("violations", raw.violations)
        return ClassifiedError(
            kind=ErrorKind.VALIDATION, message=raw.message, context=context
        )

    if isinstance(raw, RetryExhaustedError):
        return ClassifiedError(
            kind=raw.last_error.kind,
            message=raw.message,
            context={**raw.last_error.context, **raw.context, "exhausted": True},
        )

    if not isinstance(raw, BaseException):
        message = raw if isinstance(raw, str) and raw else UNKNOWN_ERROR_MESSAGE
        return ClassifiedError(kind=ErrorKind.UNKNOWN, message=message)

    message = get_error_message(raw)

    if is_network_error(raw):
        context = dict(getattr(raw, "context", None) or {})
        return ClassifiedError(kind=ErrorKind.NETWORK, message=message, context=context)

    if isinstance(raw, GenerationRequestError):
        length = raw.content_length if raw.content_length is not None else content_length
        return ClassifiedError(
            kind=ErrorKind.GENERATION,
            message=message,
            context={**raw.context, "content_length": length},
        )

    return ClassifiedError(
        kind=ErrorKind.UNKNOWN,
        message=message,
        context={"error_type": type(raw).__name__},
    )


def get_error_message(raw: Any) -> str:
    """Best-effort human-readable message for any failure value."""
    if isinstance(raw, ClassifiedError):
        return raw.message
    if isinstance(raw, EditorError):
        return raw.message
    if isinstance(raw, BaseException):
        return str(raw) or type(raw).__name__
    if isinstance(raw, str) and raw:
        return raw
    return UNKNOWN_ERROR_MESSAGE


def log_error(
    error: ClassifiedError | BaseException,
    where: str | None = None,
    log: logging.Logger | None = None,
) -> None:
    """Log a failure with its kind and context.

    Args:
        error: Classified error or raw exception.
        where: Optional location tag, e.g. "GenerationOrchestrator.stream".
        log: Logger to use. Defaults to this module's logger.
    """
    log = log or logger
    prefix = f"[{where}] " if where else ""

    if isinstance(error, ClassifiedError):
        suffix = f" Context: {error.context}" if error.context else ""
        log.error(f"{prefix}{error.kind.value} error: {error.message}{suffix}")
    elif isinstance(error, EditorError):
        suffix = f" Context: {error.context}" if error.context else ""
        log.error(f"{prefix}{type(error).__name__}: {error.message}{suffix}")
    else:
        log.error(f"{prefix}Error: {get_error_message(error)}")


__all__ = [
    "ErrorKind",
    "ClassifiedError",
    "EditorError",
    "ContentValidationError",
    "NetworkError",
    "GenerationRequestError",
    "GenerationTimeoutError",
    "RetryExhaustedError",
    "ClassifiedFailure",
    "classify",
    "is_network_error",
    "get_error_message",
    "log_error",
]
