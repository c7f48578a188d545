"""Tests for StreamingGenerator."""

import asyncio

import pytest

from src.errors import (
    ContentValidationError,
    ErrorKind,
    GenerationRequestError,
    GenerationTimeoutError,
    NetworkError,
    RetryExhaustedError,
    classify,
)
from src.llm.backend import CONTINUATIONS
from src.resilience import CancellationToken

from .lib import GeneratorConfig, StreamingGenerator


async def _collect(generator, seed, token=None):
    token = token or CancellationToken()
    return [piece async for piece in generator.stream(seed, token)]


class TestGeneratorConfig:
    """Tests for GeneratorConfig."""

    @pytest.mark.unit
    def test_defaults(self):
        config = GeneratorConfig()
        assert config.timeout_ms == 10_000
        assert config.max_attempts == 3
        assert config.base_delay_ms == 1000
        assert config.token_timeout_ms is None

    @pytest.mark.unit
    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("GENERATION_TIMEOUT_MS", "2500")
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("TOKEN_TIMEOUT_MS", "400")

        config = GeneratorConfig.from_environment()

        assert config.timeout_ms == 2500
        assert config.max_attempts == 5
        assert config.token_timeout_ms == 400


class TestSeedPreparation:
    """Tests for seed validation ahead of any backend call."""

    @pytest.mark.unit
    @pytest.mark.parametrize("seed", ["", "   ", "\n\t"])
    def test_blank_seed_rejected(self, scripted_backend, fast_config, seed):
        generator = StreamingGenerator(scripted_backend(), fast_config)
        with pytest.raises(ContentValidationError, match="empty input"):
            generator.prepare_seed(seed)

    @pytest.mark.unit
    def test_oversized_seed_rejected(self, scripted_backend, fast_config, monkeypatch):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "10")
        generator = StreamingGenerator(scripted_backend(), fast_config)
        with pytest.raises(ContentValidationError) as exc_info:
            generator.prepare_seed("x" * 11)
        assert classify(exc_info.value).kind is ErrorKind.VALIDATION

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_control_characters_stripped_before_backend(
        self, scripted_backend, fast_config
    ):
        backend = scripted_backend()
        generator = StreamingGenerator(backend, fast_config)

        await _collect(generator, "Hello\x00 world\x07")

        assert backend.seeds == ["Hello world"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_seed_never_reaches_backend(self, scripted_backend, fast_config):
        backend = scripted_backend()
        generator = StreamingGenerator(backend, fast_config)

        with pytest.raises(ContentValidationError):
            await _collect(generator, "  ")
        assert backend.calls == 0


class TestStream:
    """Tests for StreamingGenerator.stream."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tokens_join_to_continuation(self, scripted_backend, fast_config):
        generator = StreamingGenerator(scripted_backend(), fast_config)
        tokens = await _collect(generator, "Hello world")
        assert tokens == ["The", " ", "sun"]
        assert "".join(tokens) == "The sun"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_default_synthetic_backend(self, fast_backend, fast_config, sample_seeds):
        generator = StreamingGenerator(fast_backend, fast_config)
        for seed in sample_seeds:
            text = "".join(await _collect(generator, seed))
            assert text in CONTINUATIONS

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_mid_stream(self, scripted_backend, fast_config):
        backend = scripted_backend("one two three four five", delay_ms=1)
        generator = StreamingGenerator(backend, fast_config)
        token = CancellationToken()
        received = []

        async for piece in generator.stream("Hello world", token):
            received.append(piece)
            if len(received) == 3:
                token.cancel("user")

        assert received == ["one", " ", "two"]
        assert token.reason == "user"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pre_cancelled_token_skips_backend(self, scripted_backend, fast_config):
        backend = scripted_backend()
        generator = StreamingGenerator(backend, fast_config)
        token = CancellationToken()
        token.cancel()

        assert await _collect(generator, "Hello world", token) == []
        assert backend.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_untyped_backend_failure_becomes_generation_error(
        self, scripted_backend, fast_config
    ):
        backend = scripted_backend(error=RuntimeError("model overloaded"))
        generator = StreamingGenerator(backend, fast_config)

        with pytest.raises(GenerationRequestError) as exc_info:
            await _collect(generator, "Hello world")

        classified = classify(exc_info.value)
        assert classified.kind is ErrorKind.GENERATION
        assert classified.context["content_length"] == len("Hello world")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_failure_passes_through(self, scripted_backend, fast_config):
        backend = scripted_backend(error=NetworkError("connection refused"))
        generator = StreamingGenerator(backend, fast_config)

        with pytest.raises(NetworkError):
            await _collect(generator, "Hello world")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backend_timeout_message_is_network(self, scripted_backend, fast_config):
        """A backend saying "timeout" is a transport problem, not a deadline."""
        backend = scripted_backend(error=RuntimeError("upstream timeout"))
        generator = StreamingGenerator(backend, fast_config)

        with pytest.raises(RuntimeError) as exc_info:
            await _collect(generator, "Hello world")

        assert classify(exc_info.value).kind is ErrorKind.NETWORK

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_token_deadline(self, scripted_backend):
        backend = scripted_backend(hang=True)
        generator = StreamingGenerator(
            backend, GeneratorConfig(timeout_ms=200, token_timeout_ms=20)
        )
        token = CancellationToken()

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await _collect(generator, "Hello world", token)

        assert exc_info.value.timeout_ms == 20
        assert token.cancelled
        assert token.reason == "timeout"
        assert classify(exc_info.value).kind is ErrorKind.TIMEOUT


class TestGenerate:
    """Tests for StreamingGenerator.generate (full, non-streaming requests)."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_full_text(self, scripted_backend, fast_config):
        generator = StreamingGenerator(scripted_backend("The sun rose."), fast_config)
        assert await generator.generate("Hello world") == "The sun rose."

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, scripted_backend, fast_config):
        backend = scripted_backend(error=NetworkError("connection reset"), fail_first=2)
        generator = StreamingGenerator(backend, fast_config)

        assert await generator.generate("Hello world") == "The sun"
        assert backend.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhaustion(self, scripted_backend, fast_config):
        backend = scripted_backend(error=RuntimeError("model overloaded"))
        generator = StreamingGenerator(backend, fast_config)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await generator.generate("Hello world")

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error.kind is ErrorKind.GENERATION
        assert backend.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_each_attempt_gets_a_deadline(self, scripted_backend):
        backend = scripted_backend(hang=True)
        generator = StreamingGenerator(
            backend, GeneratorConfig(timeout_ms=10, max_attempts=2, base_delay_ms=1)
        )

        with pytest.raises(RetryExhaustedError) as exc_info:
            await asyncio.wait_for(generator.generate("Hello world"), timeout=2)

        assert exc_info.value.last_error.kind is ErrorKind.TIMEOUT
        assert backend.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_seed_not_retried(self, scripted_backend, fast_config):
        backend = scripted_backend()
        generator = StreamingGenerator(backend, fast_config)

        with pytest.raises(ContentValidationError):
            await generator.generate("")
        assert backend.calls == 0
