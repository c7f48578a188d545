"""Retry Policy for idempotent generation requests.

Attempts are 1-indexed and back off linearly: after attempt N fails the
policy waits `base_delay_ms * N` before attempt N+1. Only side-effect-free
operations (the generation request) go through this policy; content
mutation never does.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from src.config import EnvVar, get_environment
from src.errors import ClassifiedError, ErrorKind, RetryExhaustedError, classify

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry decisions.

    Attributes:
        max_attempts: Attempts made by `with_retry` for one request.
        base_delay_ms: Base delay for linear backoff.
        max_retries: Retries a caller may request after a surfaced failure.
        unknown_retries: Retry cap for UNKNOWN failures (retried once).
    """

    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_retries: int = 3
    unknown_retries: int = 1

    @classmethod
    def from_environment(cls) -> "RetryConfig":
        """Build a config from RETRY_* environment variables."""
        return cls(
            max_attempts=get_environment(EnvVar.RETRY_MAX_ATTEMPTS),
            base_delay_ms=get_environment(EnvVar.RETRY_BASE_DELAY_MS),
            max_retries=get_environment(EnvVar.MAX_USER_RETRIES),
        )


class RetryStrategy:
    """Retry decisions based on the failure's classification.

    Policy:
        - VALIDATION: never retried, the input must change first.
        - NETWORK, GENERATION, TIMEOUT: retried up to `max_retries`.
        - UNKNOWN: retried at most `unknown_retries` times.

    Example:
        >>> strategy = RetryStrategy(RetryConfig(base_delay_ms=100))
        >>> strategy.get_backoff_delay(2)
        200.0
    """

    def __init__(self, config: RetryConfig | None = None):
        """Initialize retry strategy.

        Args:
            config: Retry configuration options.
        """
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        return self._config

    def get_backoff_delay(self, attempt: int) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-based).

        Returns:
            Delay in milliseconds before the next attempt.
        """
        return float(self._config.base_delay_ms * max(attempt, 1))

    def retry_limit(self, error: ClassifiedError) -> int:
        """Maximum number of retries allowed for this kind of failure."""
        if error.kind is ErrorKind.VALIDATION:
            return 0
        if error.kind is ErrorKind.UNKNOWN:
            return min(self._config.unknown_retries, self._config.max_retries)
        return self._config.max_retries

    def should_retry(self, error: ClassifiedError, retries_done: int) -> bool:
        """Determine if a surfaced failure may be retried again.

        Args:
            error: The classified failure.
            retries_done: Retries already spent on the current request.

        Returns:
            True if another retry is allowed.
        """
        return retries_done < self.retry_limit(error)


def _default_should_retry(error: ClassifiedError) -> bool:
    return error.kind is not ErrorKind.VALIDATION


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: float = 1000.0,
    *,
    should_retry: Callable[[ClassifiedError], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call an idempotent async operation until it succeeds.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt.
        max_attempts: Total attempts, including the first.
        base_delay_ms: Base for linear backoff between attempts.
        should_retry: Predicate on the classified failure. Defaults to
            retrying everything except VALIDATION failures.
        sleep: Awaitable sleep taking seconds (injectable for tests).

    Returns:
        The first successful result.

    Raises:
        RetryExhaustedError: After the final attempt fails, or as soon as a
            failure is not retryable. Carries the last classified error,
            the attempts made and the base delay.
    """
    max_attempts = max(max_attempts, 1)
    predicate = should_retry or _default_should_retry

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = classify(e)

            if attempt == max_attempts or not predicate(last_error):
                logger.error(
                    f"Giving up after attempt {attempt}/{max_attempts}: "
                    f"{last_error.kind.value}: {last_error.message}"
                )
                raise RetryExhaustedError(
                    last_error, attempts=attempt, base_delay_ms=base_delay_ms
                ) from e

            delay_ms = base_delay_ms * attempt
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed "
                f"({last_error.kind.value}: {last_error.message}), "
                f"retrying in {delay_ms:g}ms"
            )
            await sleep(delay_ms / 1000)

    # Unreachable: the loop either returns or raises
    raise AssertionError("with_retry exited without a result")


__all__ = ["RetryConfig", "RetryStrategy", "with_retry"]
