"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- A scripted generation backend shared by generator and orchestrator tests
- Global test configuration
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

import pytest
from dotenv import load_dotenv

from src.llm.backend import GenerationBackend, tokenize
from src.resilience import CancellationToken

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Scripted Backend
# =============================================================================


class ScriptedBackend(GenerationBackend):
    """Deterministic backend for tests.

    Streams a fixed token list, optionally failing the first N requests or
    hanging until cancelled, and records what it was asked and what it sent.
    """

    def __init__(
        self,
        tokens: list[str] | str = ("The", " ", "sun"),
        *,
        error: Exception | None = None,
        fail_first: int | None = None,
        delay_ms: float = 0,
        hang: bool = False,
    ):
        self.tokens = tokenize(tokens) if isinstance(tokens, str) else list(tokens)
        self.error = error
        self.fail_first = fail_first
        self.delay_ms = delay_ms
        self.hang = hang
        self.calls = 0
        self.seeds: list[str] = []
        self.emitted: list[str] = []

    @property
    def name(self) -> str:
        return "scripted"

    def _should_fail(self) -> bool:
        if self.error is None:
            return False
        return self.fail_first is None or self.calls <= self.fail_first

    async def generate(self, seed: str) -> str:
        self.calls += 1
        self.seeds.append(seed)
        if self.hang:
            await asyncio.Event().wait()
        if self._should_fail():
            raise self.error
        return "".join(self.tokens)

    async def stream_generate(
        self,
        seed: str,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        self.calls += 1
        self.seeds.append(seed)
        if self.hang:
            await cancel_token.wait()
            return
        if self._should_fail():
            raise self.error
        for token in self.tokens:
            if await cancel_token.sleep(self.delay_ms / 1000):
                return
            self.emitted.append(token)
            yield token


# =============================================================================
# Common Test Fixtures
# =============================================================================


@pytest.fixture
def scripted_backend() -> Callable[..., ScriptedBackend]:
    """Factory for ScriptedBackend instances.

    Returns:
        Callable accepting ScriptedBackend constructor arguments.
    """
    return ScriptedBackend
