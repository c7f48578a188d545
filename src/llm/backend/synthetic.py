"""Synthetic backends for offline continuation.

`SyntheticBackend` stands in for a hosted model: it picks a canned
continuation, emits it token by token with jittered delays, and can inject
transient failures before the first token. `StaticBackend` always returns
the same text and is handy for deterministic demos.
"""

import logging
import random
import re
from dataclasses import dataclass, field
from typing import AsyncIterator, Protocol

from src.config import EnvVar, get_environment, get_token_delay_range
from src.errors import GenerationRequestError, NetworkError
from src.resilience import CancellationToken

from .base import GenerationBackend, tokenize

logger = logging.getLogger(__name__)

CONTINUATIONS: tuple[str, ...] = (
    "The morning sun cast long shadows across the empty street...",
    "As the clock struck midnight, the old library seemed to come alive...",
    "The coffee shop buzzed with the familiar sounds of morning...",
    "Mountains stretched endlessly before them, their peaks shrouded in mist...",
    "In the digital age, human connections had become both easier and more complex...",
    "The old wooden door creaked as it opened, revealing a room untouched for years...",
    "She closed her eyes and listened to the ocean waves crashing against the shore...",
    "The city never slept, its neon lights painting the night in electric blues and pinks...",
    "Thunder rumbled in the distance as dark clouds gathered overhead...",
    "In the quiet of the forest, every sound seemed amplified...",
)

# Short seeds get a descriptive scene-setting continuation
OPENING_PATTERN = re.compile(r"morning|door|city", re.IGNORECASE)

SHORT_SEED_LENGTH = 50


class ContinuationPolicy(Protocol):
    """Chooses the continuation text for a seed."""

    def select(self, seed: str, rng: random.Random) -> str: ...


@dataclass
class LengthBiasedPolicy:
    """Default selection policy.

    Seeds shorter than `short_seed_length` always get the first candidate
    matching `opening_pattern`; longer seeds draw uniformly from the pool.

    Attributes:
        candidates: Continuation pool.
        short_seed_length: Length below which a seed counts as short.
        opening_pattern: Regex picking "opening" continuations.
    """

    candidates: tuple[str, ...] = CONTINUATIONS
    short_seed_length: int = SHORT_SEED_LENGTH
    opening_pattern: re.Pattern = field(default=OPENING_PATTERN)

    def select(self, seed: str, rng: random.Random) -> str:
        if not self.candidates:
            raise GenerationRequestError(
                "No continuation candidates configured", content_length=len(seed)
            )
        if len(seed) < self.short_seed_length:
            for candidate in self.candidates:
                if self.opening_pattern.search(candidate):
                    return candidate
            return self.candidates[0]
        return rng.choice(self.candidates)


class SyntheticBackend(GenerationBackend):
    """Offline backend emulating a streaming model service.

    Example:
        >>> backend = SyntheticBackend(delay_range_ms=(0, 0))
        >>> await backend.generate("A short seed")
        'The morning sun cast long shadows across the empty street...'
    """

    def __init__(
        self,
        *,
        policy: ContinuationPolicy | None = None,
        failure_rate: float | None = None,
        delay_range_ms: tuple[float, float] | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize the synthetic backend.

        Args:
            policy: Continuation selection policy.
            failure_rate: Probability of a transient failure per request.
                Defaults to EnvVar.FAILURE_RATE.
            delay_range_ms: Per-token delay bounds. Defaults to
                EnvVar.TOKEN_DELAY_MIN_MS / TOKEN_DELAY_MAX_MS.
            rng: Random source for selection, jitter and failures.
        """
        self._policy = policy or LengthBiasedPolicy()
        self._failure_rate = get_environment(EnvVar.FAILURE_RATE, override=failure_rate)
        self._delay_range_ms = delay_range_ms or get_token_delay_range()
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "synthetic"

    def select(self, seed: str) -> str:
        """Pick the continuation for a seed using the configured policy."""
        return self._policy.select(seed, self._rng)

    def _maybe_fail(self, seed: str) -> None:
        if self._failure_rate <= 0 or self._rng.random() >= self._failure_rate:
            return
        if self._rng.random() < 0.5:
            raise NetworkError("Network error while contacting the generation service")
        raise GenerationRequestError(
            "Generation service returned an error", content_length=len(seed)
        )

    def _token_delay(self) -> float:
        low, high = self._delay_range_ms
        return self._rng.uniform(low, high) / 1000

    async def generate(self, seed: str) -> str:
        self._maybe_fail(seed)
        return self.select(seed)

    async def stream_generate(
        self,
        seed: str,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        # Failures are only injected here, before anything is emitted
        self._maybe_fail(seed)
        text = self.select(seed)
        logger.debug(f"Streaming {len(text)} characters for seed of {len(seed)}")

        for token in tokenize(text):
            if await cancel_token.sleep(self._token_delay()):
                return
            yield token


class StaticBackend(GenerationBackend):
    """Backend that always continues with the same text."""

    def __init__(self, text: str, *, delay_ms: float = 0):
        self._text = text
        self._delay_ms = delay_ms

    @property
    def name(self) -> str:
        return "static"

    async def generate(self, seed: str) -> str:
        return self._text

    async def stream_generate(
        self,
        seed: str,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        for token in tokenize(self._text):
            if await cancel_token.sleep(self._delay_ms / 1000):
                return
            yield token


__all__ = [
    "CONTINUATIONS",
    "ContinuationPolicy",
    "LengthBiasedPolicy",
    "SyntheticBackend",
    "StaticBackend",
]
