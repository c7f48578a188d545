"""Abstract base class for generation backends.

Defines the narrow interface the orchestration core depends on. Any provider
(a hosted model, a local model, or the bundled synthetic backend) plugs in by
implementing `generate` and `stream_generate`.
"""

import re
from abc import ABC, abstractmethod
from typing import AsyncIterator

from src.resilience import CancellationToken

# Whitespace runs are kept as their own tokens so joining is lossless
_TOKEN_PATTERN = re.compile(r"(\s+)")


def tokenize(text: str) -> list[str]:
    """Split text into word and whitespace tokens.

    Example:
        >>> tokenize("The sun  rose")
        ['The', ' ', 'sun', '  ', 'rose']

    Guarantees ``"".join(tokenize(text)) == text``.
    """
    return [part for part in _TOKEN_PATTERN.split(text) if part]


class GenerationBackend(ABC):
    """Abstract interface for text continuation backends.

    Backends receive already validated and sanitized seed content.

    Example:
        >>> backend = SyntheticBackend()
        >>> text = await backend.generate("Once upon a time")
        >>> async for token in backend.stream_generate("Once", token):
        ...     print(token, end="")
    """

    @abstractmethod
    async def generate(self, seed: str) -> str:
        """Produce a full continuation for the seed.

        Args:
            seed: Sanitized, non-blank document text.

        Returns:
            Continuation text.

        Raises:
            NetworkError: If the service cannot be reached.
            GenerationRequestError: If the service refuses or fails.
        """

    @abstractmethod
    def stream_generate(
        self,
        seed: str,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Stream a continuation token by token.

        Implementations must stop without raising once `cancel_token` is
        cancelled, and must only raise before the first token is produced.

        Args:
            seed: Sanitized, non-blank document text.
            cancel_token: Signal to stop producing.

        Returns:
            Async iterator of text tokens.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier for logging."""


__all__ = ["GenerationBackend", "tokenize"]
