"""Tests for generation backend implementations."""

import random

import pytest

from src.errors import GenerationRequestError, NetworkError
from src.resilience import CancellationToken

from .base import tokenize
from .factory import BackendType, create_backend
from .synthetic import (
    CONTINUATIONS,
    LengthBiasedPolicy,
    StaticBackend,
    SyntheticBackend,
)


async def _collect(backend, seed, token=None):
    token = token or CancellationToken()
    return [piece async for piece in backend.stream_generate(seed, token)]


class TestTokenize:
    """Tests for the whitespace-preserving tokenizer."""

    @pytest.mark.unit
    def test_words_and_spaces(self):
        assert tokenize("The sun") == ["The", " ", "sun"]

    @pytest.mark.unit
    def test_whitespace_runs_kept_together(self):
        assert tokenize("a  \n\tb") == ["a", "  \n\t", "b"]

    @pytest.mark.unit
    def test_leading_and_trailing_whitespace(self):
        assert tokenize(" lead trail ") == [" ", "lead", " ", "trail", " "]

    @pytest.mark.unit
    def test_empty(self):
        assert tokenize("") == []

    @pytest.mark.unit
    @pytest.mark.parametrize("text", list(CONTINUATIONS) + ["  odd   spacing\n\nhere "])
    def test_lossless(self, text):
        assert "".join(tokenize(text)) == text


class TestLengthBiasedPolicy:
    """Tests for the default continuation policy."""

    @pytest.mark.unit
    def test_short_seed_gets_opening(self):
        policy = LengthBiasedPolicy()
        chosen = policy.select("Hello world", random.Random(0))
        assert chosen == CONTINUATIONS[0]
        assert "morning" in chosen

    @pytest.mark.unit
    def test_short_seed_is_deterministic(self):
        policy = LengthBiasedPolicy()
        picks = {policy.select("short", random.Random(i)) for i in range(20)}
        assert len(picks) == 1

    @pytest.mark.unit
    def test_short_seed_without_opening_falls_back_to_first(self):
        policy = LengthBiasedPolicy(candidates=("First.", "Second."))
        assert policy.select("tiny", random.Random(0)) == "First."

    @pytest.mark.unit
    def test_long_seed_draws_from_pool(self):
        policy = LengthBiasedPolicy()
        seed = "x" * 60
        picks = {policy.select(seed, random.Random(i)) for i in range(200)}
        assert picks <= set(CONTINUATIONS)
        assert len(picks) > 1

    @pytest.mark.unit
    def test_empty_pool_raises_generation_error(self):
        policy = LengthBiasedPolicy(candidates=())
        with pytest.raises(GenerationRequestError):
            policy.select("seed", random.Random(0))


class TestSyntheticBackend:
    """Tests for the synthetic streaming backend."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_reconstructs_selection(self, fast_backend):
        tokens = await _collect(fast_backend, "Hello world")
        assert "".join(tokens) == fast_backend.select("Hello world")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_returns_selection(self, fast_backend):
        assert await fast_backend.generate("Hello world") == CONTINUATIONS[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_stops_stream_quietly(self):
        backend = SyntheticBackend(failure_rate=0, delay_range_ms=(1, 1))
        token = CancellationToken()
        received = []
        async for piece in backend.stream_generate("Hello world", token):
            received.append(piece)
            if len(received) == 2:
                token.cancel()
        assert len(received) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pre_cancelled_stream_is_empty(self, fast_backend):
        token = CancellationToken()
        token.cancel()
        assert await _collect(fast_backend, "Hello world", token) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_injection_before_first_token(self):
        """Injected failures never truncate a stream midway."""
        backend = SyntheticBackend(
            failure_rate=1.0, delay_range_ms=(0, 0), rng=random.Random(3)
        )
        received = []
        with pytest.raises((NetworkError, GenerationRequestError)):
            async for piece in backend.stream_generate("Hello world", CancellationToken()):
                received.append(piece)
        assert received == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_streams_are_complete_or_absent(self):
        """With a partial failure rate each stream either fails upfront or finishes."""
        backend = SyntheticBackend(
            failure_rate=0.5, delay_range_ms=(0, 0), rng=random.Random(7)
        )
        outcomes = set()
        for _ in range(30):
            received = []
            try:
                async for piece in backend.stream_generate("Hello world", CancellationToken()):
                    received.append(piece)
            except (NetworkError, GenerationRequestError):
                assert received == []
                outcomes.add("failed")
            else:
                assert "".join(received) == CONTINUATIONS[0]
                outcomes.add("complete")
        assert outcomes == {"failed", "complete"}

    @pytest.mark.unit
    def test_failure_rate_from_environment(self, monkeypatch):
        monkeypatch.setenv("FAILURE_RATE", "0.3")
        assert SyntheticBackend()._failure_rate == 0.3

    @pytest.mark.unit
    def test_name(self, fast_backend):
        assert fast_backend.name == "synthetic"


class TestStaticBackend:
    """Tests for the fixed-text backend."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_streams_fixed_text(self):
        backend = StaticBackend("The end.")
        assert await _collect(backend, "seed") == ["The", " ", "end."]
        assert await backend.generate("seed") == "The end."


class TestCreateBackend:
    """Tests for the backend factory."""

    @pytest.mark.unit
    def test_default_is_synthetic(self):
        assert isinstance(create_backend(), SyntheticBackend)

    @pytest.mark.unit
    def test_static_by_enum(self):
        backend = create_backend(BackendType.STATIC, text="x")
        assert isinstance(backend, StaticBackend)

    @pytest.mark.unit
    def test_static_requires_text(self):
        with pytest.raises(ValueError, match="requires 'text'"):
            create_backend("static")

    @pytest.mark.unit
    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            create_backend("gpt-9")
