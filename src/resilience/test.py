"""Tests for resilience utilities.

Covers:
- CancellationToken: one-shot semantics and interruptible sleep
- with_timeout: deadline race and cancellation of the loser
- RetryStrategy / with_retry: linear backoff and terminal errors
"""

import asyncio
import time

import pytest

from src.errors import (
    ClassifiedError,
    ContentValidationError,
    ErrorKind,
    GenerationRequestError,
    GenerationTimeoutError,
    RetryExhaustedError,
    classify,
)

from .cancel import CancellationToken
from .lib import with_timeout
from .retry import RetryConfig, RetryStrategy, with_retry

# =============================================================================
# CancellationToken Tests
# =============================================================================


class TestCancellationToken:
    """Tests for the one-shot cancellation signal."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_initially_active(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_is_terminal(self):
        """Cancelling twice keeps the first reason; there is no reset."""
        token = CancellationToken()
        token.cancel("user")
        token.cancel("timeout")
        assert token.cancelled
        assert token.reason == "user"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fresh_tokens_have_distinct_ids(self):
        assert CancellationToken().id != CancellationToken().id

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sleep_completes_when_not_cancelled(self):
        token = CancellationToken()
        assert await token.sleep(0.01) is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sleep_interrupted_by_cancel(self):
        """A pending sleep returns promptly once the token is cancelled."""
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        started = time.monotonic()
        assert await token.sleep(5) is True
        assert time.monotonic() - started < 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sleep_after_cancel_returns_immediately(self):
        token = CancellationToken()
        token.cancel()
        assert await token.sleep(5) is True


# =============================================================================
# with_timeout Tests
# =============================================================================


class TestWithTimeout:
    """Tests for the Timeout Guard."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_result_in_time(self):
        async def quick():
            await asyncio.sleep(0)
            return "done"

        assert await with_timeout(quick(), 1000) == "done"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_never_settling_operation_times_out(self):
        """A hung operation yields a TIMEOUT classification and is abandoned."""
        never = asyncio.get_running_loop().create_future()

        started = time.monotonic()
        with pytest.raises(GenerationTimeoutError) as exc_info:
            await with_timeout(never, 50)

        assert time.monotonic() - started < 1
        assert exc_info.value.timeout_ms == 50
        assert classify(exc_info.value).kind is ErrorKind.TIMEOUT
        assert never.cancelled()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_signals_cancel_token(self):
        token = CancellationToken()
        with pytest.raises(GenerationTimeoutError):
            await with_timeout(asyncio.sleep(10), 10, cancel_token=token)
        assert token.cancelled
        assert token.reason == "timeout"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_operation_error_propagates_unchanged(self):
        async def failing():
            raise GenerationRequestError("model down")

        with pytest.raises(GenerationRequestError, match="model down"):
            await with_timeout(failing(), 1000)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_none_disables_deadline(self):
        async def slowish():
            await asyncio.sleep(0.01)
            return 1

        assert await with_timeout(slowish(), None) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_caller_cancellation_cancels_operation(self):
        """Cancelling the waiting caller does not orphan the operation."""
        inner = asyncio.get_running_loop().create_future()
        outer = asyncio.ensure_future(with_timeout(inner, 10_000))
        await asyncio.sleep(0)

        outer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await outer
        assert inner.cancelled()


# =============================================================================
# RetryStrategy Tests
# =============================================================================


class TestRetryConfig:
    """Tests for RetryConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay_ms == 1000.0
        assert config.max_retries == 3
        assert config.unknown_retries == 1

    @pytest.mark.unit
    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("RETRY_BASE_DELAY_MS", "20")
        monkeypatch.setenv("MAX_USER_RETRIES", "2")
        config = RetryConfig.from_environment()
        assert config.max_attempts == 5
        assert config.base_delay_ms == 20
        assert config.max_retries == 2


class TestRetryStrategy:
    """Tests for classification-driven retry decisions."""

    @staticmethod
    def _error(kind: ErrorKind) -> ClassifiedError:
        return ClassifiedError(kind=kind, message="x")

    @pytest.mark.unit
    def test_linear_backoff(self):
        strategy = RetryStrategy(RetryConfig(base_delay_ms=100))
        assert strategy.get_backoff_delay(1) == 100.0
        assert strategy.get_backoff_delay(2) == 200.0
        assert strategy.get_backoff_delay(3) == 300.0

    @pytest.mark.unit
    def test_validation_never_retried(self):
        strategy = RetryStrategy()
        assert not strategy.should_retry(self._error(ErrorKind.VALIDATION), 0)

    @pytest.mark.unit
    def test_unknown_retried_once(self):
        strategy = RetryStrategy()
        error = self._error(ErrorKind.UNKNOWN)
        assert strategy.should_retry(error, 0)
        assert not strategy.should_retry(error, 1)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "kind", [ErrorKind.NETWORK, ErrorKind.GENERATION, ErrorKind.TIMEOUT]
    )
    def test_transient_kinds_use_max_retries(self, kind):
        strategy = RetryStrategy(RetryConfig(max_retries=2))
        error = self._error(kind)
        assert strategy.should_retry(error, 1)
        assert not strategy.should_retry(error, 2)


# =============================================================================
# with_retry Tests
# =============================================================================


class _Recorder:
    """Records sleeps instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class TestWithRetry:
    """Tests for the Retry Policy."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            return "ok"

        assert await with_retry(op, 3, 100) == "ok"
        assert calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_always_failing_makes_exactly_max_attempts(self):
        """Three attempts, linear waits, then a terminal wrapped error."""
        calls = 0
        sleep = _Recorder()

        async def op():
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_retry(op, 3, 100, sleep=sleep)

        assert calls == 3
        assert sleep.delays == [0.1, 0.2]
        error = classify(exc_info.value)
        assert error.kind is ErrorKind.UNKNOWN
        assert error.context["attempts"] == 3
        assert error.context["base_delay_ms"] == 100
        assert error.exhausted

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generation_failure_stays_generation(self):
        async def op():
            raise GenerationRequestError("refused", content_length=5)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_retry(op, 2, 1, sleep=_Recorder())

        assert exc_info.value.last_error.kind is ErrorKind.GENERATION
        assert classify(exc_info.value).kind is ErrorKind.GENERATION

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ConnectionError("network blip")
            return calls

        assert await with_retry(op, 3, 10, sleep=_Recorder()) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validation_not_retried(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            raise ContentValidationError("empty")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_retry(op, 3, 10, sleep=_Recorder())

        assert calls == 1
        assert exc_info.value.attempts == 1
        assert classify(exc_info.value).kind is ErrorKind.VALIDATION

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_custom_predicate(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            raise ConnectionError("network")

        with pytest.raises(RetryExhaustedError):
            await with_retry(op, 5, 10, should_retry=lambda e: False, sleep=_Recorder())
        assert calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_real_sleep_is_linear(self):
        """Default sleep waits base * attempt between tries."""
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        started = time.monotonic()
        with pytest.raises(RetryExhaustedError):
            await with_retry(op, 3, 10)
        # 10ms + 20ms of backoff
        assert time.monotonic() - started >= 0.025
        assert calls == 3
