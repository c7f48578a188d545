"""Tests for the failure taxonomy and classifier."""

import logging

import pytest

from .lib import (
    ClassifiedError,
    ClassifiedFailure,
    ContentValidationError,
    ErrorKind,
    GenerationRequestError,
    GenerationTimeoutError,
    NetworkError,
    RetryExhaustedError,
    classify,
    get_error_message,
    is_network_error,
    log_error,
)


class TestClassify:
    """Tests for classify() precedence rules."""

    @pytest.mark.unit
    def test_timeout_guard_failure(self):
        """Timeout Guard failures classify as TIMEOUT with the deadline."""
        error = classify(GenerationTimeoutError(50))
        assert error.kind is ErrorKind.TIMEOUT
        assert error.context["timeout_ms"] == 50
        assert "50ms" in error.message

    @pytest.mark.unit
    def test_backend_timeout_message_is_network(self):
        """A backend message mentioning timeout is NETWORK, not TIMEOUT."""
        error = classify(GenerationRequestError("upstream timeout while generating"))
        assert error.kind is ErrorKind.NETWORK

    @pytest.mark.unit
    def test_plain_exception_with_timeout_message_is_network(self):
        """Substring rule applies to any exception type."""
        assert classify(RuntimeError("Request timeout")).kind is ErrorKind.NETWORK

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw",
        [
            RuntimeError("Network unreachable"),
            RuntimeError("Failed to fetch"),
            NetworkError("service down"),
            ConnectionResetError("reset by peer"),
        ],
    )
    def test_network_markers(self, raw):
        """Transport markers classify as NETWORK."""
        assert classify(raw).kind is ErrorKind.NETWORK

    @pytest.mark.unit
    def test_exception_name_marker(self):
        """Exception class names are matched as well as messages."""

        class FetchFailed(Exception):
            pass

        assert classify(FetchFailed("boom")).kind is ErrorKind.NETWORK

    @pytest.mark.unit
    def test_validation(self):
        """Content Guard failures classify as VALIDATION."""
        raw = ContentValidationError("too long", violations=["Content exceeds"])
        error = classify(raw)
        assert error.kind is ErrorKind.VALIDATION
        assert error.context["violations"] == ["Content exceeds"]
        assert not error.retryable

    @pytest.mark.unit
    def test_generation_records_content_length(self):
        """Generation failures carry the seed length."""
        error = classify(GenerationRequestError("model refused"), content_length=12)
        assert error.kind is ErrorKind.GENERATION
        assert error.context == {"content_length": 12}

    @pytest.mark.unit
    def test_generation_own_length_wins(self):
        """Length recorded on the exception takes priority."""
        raw = GenerationRequestError("model refused", content_length=7)
        assert classify(raw, content_length=99).context["content_length"] == 7

    @pytest.mark.unit
    def test_unknown(self):
        """Unmatched failures classify as UNKNOWN."""
        error = classify(ValueError("bad value"))
        assert error.kind is ErrorKind.UNKNOWN
        assert error.message == "bad value"
        assert error.context["error_type"] == "ValueError"

    @pytest.mark.unit
    def test_retry_exhausted_keeps_last_kind(self):
        """Exhausted retries keep the last failure's kind."""
        last = ClassifiedError(
            kind=ErrorKind.GENERATION, message="nope", context={"content_length": 3}
        )
        error = classify(RetryExhaustedError(last, attempts=3, base_delay_ms=100))
        assert error.kind is ErrorKind.GENERATION
        assert error.context["attempts"] == 3
        assert error.context["base_delay_ms"] == 100
        assert error.context["content_length"] == 3
        assert error.exhausted
        assert error.message.startswith("Operation failed after 3 attempts")

    @pytest.mark.unit
    def test_passthrough(self):
        """Classified values and wrappers pass through unchanged."""
        error = ClassifiedError(kind=ErrorKind.NETWORK, message="x")
        assert classify(error) is error
        assert classify(ClassifiedFailure(error)) is error

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [None, 42, "", object()])
    def test_non_exception_values(self, raw):
        """Non-exception values never raise and map to UNKNOWN."""
        error = classify(raw)
        assert error.kind is ErrorKind.UNKNOWN
        assert error.message == "An unknown error occurred"

    @pytest.mark.unit
    def test_string_value(self):
        """Bare strings become the message."""
        assert classify("it broke").message == "it broke"

    @pytest.mark.unit
    def test_never_raises_on_broken_str(self):
        """Exceptions whose __str__ fails still classify."""

        class Hostile(Exception):
            def __str__(self):
                raise RuntimeError("no")

        error = classify(Hostile())
        assert error.kind is ErrorKind.UNKNOWN


class TestClassifiedError:
    """Tests for the ClassifiedError model."""

    @pytest.mark.unit
    def test_frozen(self):
        """ClassifiedError is immutable."""
        error = ClassifiedError(kind=ErrorKind.UNKNOWN, message="x")
        with pytest.raises(Exception):
            error.message = "y"

    @pytest.mark.unit
    def test_timestamp_is_set(self):
        """Timestamp defaults to creation time."""
        error = ClassifiedError(kind=ErrorKind.UNKNOWN, message="x")
        assert error.timestamp.tzinfo is not None


class TestHelpers:
    """Tests for message and logging helpers."""

    @pytest.mark.unit
    def test_is_network_error(self):
        assert is_network_error(RuntimeError("NETWORK down"))
        assert not is_network_error(RuntimeError("disk full"))

    @pytest.mark.unit
    def test_get_error_message(self):
        assert get_error_message(RuntimeError("boom")) == "boom"
        assert get_error_message(RuntimeError()) == "RuntimeError"
        assert get_error_message("plain") == "plain"
        assert get_error_message(None) == "An unknown error occurred"

    @pytest.mark.unit
    def test_log_error_includes_context(self, caplog):
        """log_error writes kind, location and context."""
        error = classify(GenerationTimeoutError(10))
        with caplog.at_level(logging.ERROR):
            log_error(error, "unit")
        assert "[unit] timeout error" in caplog.text
        assert "timeout_ms" in caplog.text
