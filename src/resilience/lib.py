"""Timeout Guard.

Races an awaitable against a deadline. Whichever settles first decides the
outcome; on expiry the operation is cancelled and abandoned rather than
awaited.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from src.errors import GenerationTimeoutError

from .cancel import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(
    operation: Awaitable[T],
    timeout_ms: float | None,
    *,
    cancel_token: CancellationToken | None = None,
) -> T:
    """Await an operation, failing if it does not settle in time.

    Args:
        operation: Coroutine, task or future to race.
        timeout_ms: Deadline in milliseconds. None disables the deadline.
        cancel_token: Signalled on expiry so cooperative producers stop too.

    Returns:
        The operation's result.

    Raises:
        GenerationTimeoutError: If the deadline fires first.
        Exception: Whatever the operation raises, unchanged.
    """
    if timeout_ms is None:
        return await operation

    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=max(timeout_ms, 0) / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    # Deadline won the race; the operation is cancelled but not awaited
    task.cancel()
    if cancel_token is not None:
        cancel_token.cancel("timeout")
    logger.warning(f"Operation timed out after {timeout_ms:g}ms")
    raise GenerationTimeoutError(timeout_ms)


__all__ = ["with_timeout"]
