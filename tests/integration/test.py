"""Integration tests running the orchestrator over the synthetic backend."""

import asyncio
import random

import pytest

from src.errors import ErrorKind
from src.llm import CONTINUATIONS, StreamingGenerator, SyntheticBackend
from src.llm.generator import GeneratorConfig
from src.machine import GenerationOrchestrator, OrchestratorConfig, State
from src.resilience import RetryConfig


def _orchestrator(backend: SyntheticBackend, **overrides) -> GenerationOrchestrator:
    config = OrchestratorConfig(
        success_grace_ms=20,
        error_grace_ms=5000,
        retry=RetryConfig(max_retries=10),
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    generator = StreamingGenerator(
        backend, GeneratorConfig(timeout_ms=1000, max_attempts=3, base_delay_ms=1)
    )
    return GenerationOrchestrator(generator, config)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_short_seed_session():
    backend = SyntheticBackend(failure_rate=0, delay_range_ms=(1, 3))

    async with _orchestrator(backend) as orchestrator:
        orchestrator.update_content("It was a dark night")
        orchestrator.continue_writing()
        snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=10)

    assert snapshot.context.generated_text == CONTINUATIONS[0]
    assert snapshot.context.content == f"It was a dark night {CONTINUATIONS[0]}"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_long_seed_session_uses_pool():
    seed = "The expedition had been travelling for weeks across the frozen plateau."
    backend = SyntheticBackend(
        failure_rate=0, delay_range_ms=(0, 1), rng=random.Random(42)
    )

    async with _orchestrator(backend) as orchestrator:
        orchestrator.update_content(seed)
        orchestrator.continue_writing()
        snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=10)

    assert snapshot.context.generated_text in CONTINUATIONS
    # Content ended a sentence, so no separator is added
    assert snapshot.context.content == seed + snapshot.context.generated_text


@pytest.mark.integration
@pytest.mark.asyncio
async def test_flaky_backend_recovers_with_retries():
    backend = SyntheticBackend(
        failure_rate=0.5, delay_range_ms=(0, 1), rng=random.Random(11)
    )

    async with _orchestrator(backend) as orchestrator:
        orchestrator.update_content("Hello world")
        orchestrator.continue_writing()

        for _ in range(10):
            outcome = await _next_outcome(orchestrator)
            if outcome.state is State.SUCCESS:
                break
            assert outcome.context.error.kind in (ErrorKind.NETWORK, ErrorKind.GENERATION)
            orchestrator.retry()
        else:
            pytest.fail("Generation never succeeded")

    assert outcome.context.content.startswith("Hello world The morning sun")
    assert outcome.context.generation_count == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_generation_mode():
    backend = SyntheticBackend(failure_rate=0, delay_range_ms=(0, 0))

    async with _orchestrator(backend, streaming=False) as orchestrator:
        orchestrator.update_content("Hello world")
        orchestrator.continue_writing()
        snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=10)

    assert snapshot.context.content == f"Hello world {CONTINUATIONS[0]}"


async def _next_outcome(orchestrator: GenerationOrchestrator):
    """Wait for the next success or error snapshot."""
    outcome: asyncio.Future = asyncio.get_running_loop().create_future()

    def listener(snapshot):
        if snapshot.state in (State.SUCCESS, State.ERROR) and not outcome.done():
            outcome.set_result(snapshot)

    unsubscribe = orchestrator.subscribe(listener)
    try:
        return await asyncio.wait_for(outcome, 10)
    finally:
        unsubscribe()
