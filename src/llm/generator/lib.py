"""StreamingGenerator: guarded access to a generation backend.

Sits between the orchestrator and a pluggable backend. Every request is
validated and sanitized by the Content Guard first; streamed tokens are only
forwarded while the cancellation token is clear; backend failures are typed
before they leave this module.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator

from src.config import EnvVar, get_environment
from src.errors import (
    ContentValidationError,
    EditorError,
    GenerationRequestError,
    is_network_error,
)
from src.guard import check
from src.resilience import CancellationToken, with_retry, with_timeout

from ..backend import GenerationBackend, create_backend

logger = logging.getLogger(__name__)

_END = object()


@dataclass
class GeneratorConfig:
    """Configuration for StreamingGenerator.

    Attributes:
        timeout_ms: Deadline for one full (non-streaming) request.
        max_attempts: Retry Policy attempts for full requests.
        base_delay_ms: Retry Policy base backoff.
        token_timeout_ms: Deadline between streamed tokens (None = no limit).
    """

    timeout_ms: float = 10_000
    max_attempts: int = 3
    base_delay_ms: float = 1000
    token_timeout_ms: float | None = None

    @classmethod
    def from_environment(cls) -> "GeneratorConfig":
        """Build a config from environment variables."""
        return cls(
            timeout_ms=get_environment(EnvVar.GENERATION_TIMEOUT_MS),
            max_attempts=get_environment(EnvVar.RETRY_MAX_ATTEMPTS),
            base_delay_ms=get_environment(EnvVar.RETRY_BASE_DELAY_MS),
            token_timeout_ms=get_environment(EnvVar.TOKEN_TIMEOUT_MS),
        )


class StreamingGenerator:
    """Produces continuations for seed content.

    Pipeline:
        1. Validate and sanitize the seed (blank -> ContentValidationError)
        2. Ask the backend for tokens (or a full text)
        3. Stop forwarding as soon as the cancellation token fires
        4. Type any backend failure raised before the first token

    Example:
        >>> generator = StreamingGenerator()
        >>> token = CancellationToken()
        >>> async for piece in generator.stream("It was a dark night", token):
        ...     print(piece, end="")

        >>> # Full, non-streaming request with timeout and retries
        >>> text = await generator.generate("It was a dark night")
    """

    def __init__(
        self,
        backend: GenerationBackend | None = None,
        config: GeneratorConfig | None = None,
    ):
        """Initialize StreamingGenerator.

        Args:
            backend: Generation backend. Creates the synthetic backend if None.
            config: Generator configuration.
        """
        self._backend = backend or create_backend()
        self._config = config or GeneratorConfig.from_environment()

    @property
    def backend(self) -> GenerationBackend:
        return self._backend

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    def prepare_seed(self, seed: str) -> str:
        """Validate and sanitize seed content.

        Raises:
            ContentValidationError: If the seed is invalid or blank.
        """
        sanitized = check(seed)
        if not sanitized.strip():
            raise ContentValidationError("Cannot generate content for empty input")
        return sanitized

    async def stream(
        self,
        seed: str,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Stream continuation tokens for a seed.

        The stream is lazy, finite and single-use. Cancellation ends it
        quietly; no error is raised and no further tokens are produced.

        Args:
            seed: Document text to continue.
            cancel_token: Signal to stop early.

        Yields:
            Text tokens; joined in order they form the selected continuation.

        Raises:
            ContentValidationError: If the seed is invalid or blank.
            NetworkError: If the backend cannot be reached.
            GenerationRequestError: If the backend fails before the first token.
            GenerationTimeoutError: If a token does not arrive in time.
        """
        sanitized = self.prepare_seed(seed)
        if cancel_token.cancelled:
            return

        tokens = aiter(self._backend.stream_generate(sanitized, cancel_token))
        emitted = 0

        try:
            while True:
                try:
                    token = await with_timeout(
                        anext(tokens, _END),
                        self._config.token_timeout_ms,
                        cancel_token=cancel_token,
                    )
                except EditorError:
                    raise
                except Exception as e:
                    if emitted or is_network_error(e):
                        raise
                    raise GenerationRequestError(
                        f"Generation request failed: {e}",
                        content_length=len(sanitized),
                    ) from e

                if token is _END:
                    break
                if cancel_token.cancelled:
                    logger.debug(f"Stream cancelled after {emitted} token(s)")
                    return
                emitted += 1
                yield token
        finally:
            aclose = getattr(tokens, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except RuntimeError:
                    # Still running inside an abandoned timed-out step
                    logger.debug("Backend stream left for the event loop to finalize")

        logger.debug(f"Stream finished with {emitted} token(s) from {self._backend.name}")

    async def generate(self, seed: str) -> str:
        """Request a full continuation with timeout and retries.

        Each attempt gets a fresh deadline.

        Raises:
            ContentValidationError: If the seed is invalid or blank.
            RetryExhaustedError: If every attempt failed.
        """
        sanitized = self.prepare_seed(seed)

        async def attempt() -> str:
            try:
                return await with_timeout(
                    self._backend.generate(sanitized), self._config.timeout_ms
                )
            except EditorError:
                raise
            except Exception as e:
                if is_network_error(e):
                    raise
                raise GenerationRequestError(
                    f"Generation request failed: {e}", content_length=len(sanitized)
                ) from e

        return await with_retry(
            attempt,
            self._config.max_attempts,
            self._config.base_delay_ms,
        )


__all__ = ["GeneratorConfig", "StreamingGenerator"]
