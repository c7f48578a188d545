"""LLM module test fixtures."""

from __future__ import annotations

import random

import pytest

from src.llm.backend import SyntheticBackend
from src.llm.generator import GeneratorConfig

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def seeded_rng() -> random.Random:
    """Deterministic random source."""
    return random.Random(1234)


@pytest.fixture
def fast_backend(seeded_rng: random.Random) -> SyntheticBackend:
    """Synthetic backend without token delays or failures.

    Returns:
        SyntheticBackend instance.
    """
    return SyntheticBackend(failure_rate=0.0, delay_range_ms=(0, 0), rng=seeded_rng)


@pytest.fixture
def fast_config() -> GeneratorConfig:
    """Generator config with millisecond-scale deadlines and backoff."""
    return GeneratorConfig(timeout_ms=200, max_attempts=3, base_delay_ms=1)


@pytest.fixture
def sample_seeds() -> list[str]:
    """Seeds on both sides of the short-seed threshold.

    Returns:
        List of seed strings.
    """
    return [
        "Hello world",
        "It was a dark night.",
        "The expedition had been travelling for weeks across the frozen plateau, "
        "and supplies were running dangerously low.",
    ]
