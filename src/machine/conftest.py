"""Orchestrator test fixtures."""

from __future__ import annotations

from typing import Callable

import pytest

from src.llm.backend import GenerationBackend
from src.llm.generator import GeneratorConfig, StreamingGenerator
from src.machine import GenerationOrchestrator, OrchestratorConfig
from src.resilience import RetryConfig


@pytest.fixture
def orchestrator_config() -> OrchestratorConfig:
    """Orchestrator config with short grace periods.

    The error grace period stays long so tests can inspect the error state.
    """
    return OrchestratorConfig(
        streaming=True,
        stream_timeout_ms=2000,
        success_grace_ms=30,
        error_grace_ms=10_000,
        retry=RetryConfig(max_attempts=2, base_delay_ms=1, max_retries=2),
    )


@pytest.fixture
def make_orchestrator(
    orchestrator_config: OrchestratorConfig,
) -> Callable[..., GenerationOrchestrator]:
    """Factory building an orchestrator around a backend.

    Returns:
        Callable taking a backend and optional config overrides.
    """

    def factory(backend: GenerationBackend, **overrides) -> GenerationOrchestrator:
        config = OrchestratorConfig(**{**vars(orchestrator_config), **overrides})
        generator = StreamingGenerator(
            backend,
            GeneratorConfig(timeout_ms=500, max_attempts=2, base_delay_ms=1),
        )
        return GenerationOrchestrator(generator, config)

    return factory
