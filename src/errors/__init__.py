"""Failure taxonomy for quillstream.

Raw exceptions raised by the guard, backend, timeout and retry layers are
mapped by `classify()` into a closed set of `ClassifiedError` values before
they reach the orchestrator.
"""

from .lib import (
    ClassifiedError,
    ClassifiedFailure,
    ContentValidationError,
    EditorError,
    ErrorKind,
    GenerationRequestError,
    GenerationTimeoutError,
    NetworkError,
    RetryExhaustedError,
    classify,
    get_error_message,
    is_network_error,
    log_error,
)

__all__ = [
    # Classified values
    "ErrorKind",
    "ClassifiedError",
    # Raw failures
    "EditorError",
    "ContentValidationError",
    "NetworkError",
    "GenerationRequestError",
    "GenerationTimeoutError",
    "RetryExhaustedError",
    "ClassifiedFailure",
    # Helpers
    "classify",
    "is_network_error",
    "get_error_message",
    "log_error",
]
