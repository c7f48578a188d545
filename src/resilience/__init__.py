"""Resilience utilities for generation requests.

Provides the cancellation token handed to streaming producers, the Timeout
Guard that races an operation against a deadline, and the linear-backoff
Retry Policy for idempotent requests.
"""

from .cancel import CancellationToken
from .lib import with_timeout
from .retry import RetryConfig, RetryStrategy, with_retry

__all__ = [
    "CancellationToken",
    "with_timeout",
    "with_retry",
    "RetryConfig",
    "RetryStrategy",
]
