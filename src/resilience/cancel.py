"""One-shot cancellation signal shared between the orchestrator and producers."""

import asyncio
import itertools

_token_ids = itertools.count(1)


class CancellationToken:
    """Single-use cancellation signal.

    Created fresh for every generation attempt. Once cancelled it stays
    cancelled; there is no reset. Producers check `cancelled` before each
    token and use `sleep()` so a cancel interrupts any pending delay.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel("user")
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self.id = next(_token_ids)
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Why the token was cancelled, if it was."""
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless cancelled first.

        Returns:
            True if the token was cancelled before or during the sleep.
        """
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            return self.cancelled
        return True

    def __repr__(self) -> str:
        state = f"cancelled:{self._reason}" if self.cancelled else "active"
        return f"CancellationToken(id={self.id}, {state})"


__all__ = ["CancellationToken"]
