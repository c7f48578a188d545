"""Tests for the generation orchestrator."""

import asyncio

import pytest

from src.errors import EditorError, ErrorKind, NetworkError

from .lib import GenerationOrchestrator, OrchestratorConfig
from .merge import merge_content
from .models import Event, EventType, GenerationContext, State

WAIT = 2.0


def _record_states(orchestrator: GenerationOrchestrator) -> list[State]:
    """Collect the distinct state sequence seen by a subscriber."""
    states = [orchestrator.state]

    def listener(snapshot):
        if snapshot.state != states[-1]:
            states.append(snapshot.state)

    orchestrator.subscribe(listener)
    return states


async def _fail_once(orchestrator: GenerationOrchestrator) -> None:
    orchestrator.update_content("Hello world")
    orchestrator.continue_writing()
    await orchestrator.wait_for(State.ERROR, timeout=WAIT)


# =============================================================================
# Merge rule
# =============================================================================


class TestMergeContent:
    """Tests for merge_content."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "content,generated,expected",
        [
            ("Hello world", "The sun", "Hello world The sun"),
            ("  Hello world  ", "  The sun  ", "Hello world The sun"),
            ("", "The sun", "The sun"),
            ("   ", " The sun ", "The sun"),
            ("Hello world.", "The sun", "Hello world.The sun"),
            ("Really!", "Yes", "Really!Yes"),
            ("Why?", "Because", "Why?Because"),
            ("Hello world", " The sun", "Hello world The sun"),
            ("Hello world", "  The sun", "Hello world The sun"),
            ("Hello world", "\n\nThe sun", "Hello world The sun"),
            ("Hello world.", " The sun", "Hello world. The sun"),
        ],
    )
    def test_join(self, content, generated, expected):
        assert merge_content(content, generated) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("generated", ["", "   ", "\n\t"])
    def test_blank_generated_leaves_content(self, generated):
        assert merge_content("  Hello world ", generated) == "  Hello world "


# =============================================================================
# Models
# =============================================================================


class TestModels:
    """Tests for events and context."""

    @pytest.mark.unit
    def test_context_defaults(self):
        ctx = GenerationContext()
        assert ctx.content == ""
        assert ctx.streaming_buffer == ""
        assert ctx.generated_text == ""
        assert ctx.error is None
        assert ctx.generation_count == 0
        assert ctx.retry_count == 0
        assert ctx.last_generation_time is None

    @pytest.mark.unit
    def test_event_constructors(self):
        assert Event.update_content("x") == Event(EventType.UPDATE_CONTENT, content="x")
        assert Event.stream_token("a", 3).generation_id == 3
        assert Event.grace_expired(7).serial == 7

    @pytest.mark.unit
    def test_generating_states(self):
        assert State.LOADING.is_generating
        assert State.STREAMING.is_generating
        assert not State.IDLE.is_generating
        assert not State.ERROR.is_generating


class TestOrchestratorConfig:
    """Tests for OrchestratorConfig."""

    @pytest.mark.unit
    def test_defaults(self):
        config = OrchestratorConfig()
        assert config.streaming is True
        assert config.success_grace_ms == 150
        assert config.error_grace_ms == 10_000
        assert config.stream_timeout_ms == 30_000

    @pytest.mark.unit
    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("STREAMING_ENABLED", "false")
        monkeypatch.setenv("ERROR_GRACE_MS", "500")
        monkeypatch.setenv("MAX_USER_RETRIES", "1")

        config = OrchestratorConfig.from_environment()

        assert config.streaming is False
        assert config.error_grace_ms == 500
        assert config.retry.max_retries == 1


# =============================================================================
# Observation
# =============================================================================


class TestObservation:
    """Tests for snapshots, subscriptions and lifecycle."""

    @pytest.mark.unit
    def test_initial_snapshot(self, make_orchestrator, scripted_backend):
        orchestrator = make_orchestrator(scripted_backend())
        snapshot = orchestrator.snapshot()
        assert snapshot.state is State.IDLE
        assert snapshot.context == GenerationContext()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_context_is_a_copy(self, make_orchestrator, scripted_backend):
        async with make_orchestrator(scripted_backend()) as orchestrator:
            orchestrator.update_content("Hello world")
            await orchestrator.settle()

            copy = orchestrator.context
            copy.content = "tampered"

            assert orchestrator.context.content == "Hello world"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self, make_orchestrator, scripted_backend):
        async with make_orchestrator(scripted_backend()) as orchestrator:
            seen = []
            unsubscribe = orchestrator.subscribe(seen.append)

            orchestrator.update_content("one")
            await orchestrator.settle()
            unsubscribe()
            orchestrator.update_content("two")
            await orchestrator.settle()

            assert [s.context.content for s in seen] == ["one"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_snapshot_without_change(self, make_orchestrator, scripted_backend):
        async with make_orchestrator(scripted_backend()) as orchestrator:
            seen = []
            orchestrator.subscribe(seen.append)

            orchestrator.cancel()
            orchestrator.clear_error()
            orchestrator.retry()
            await orchestrator.settle()

            assert seen == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_runner(
        self, make_orchestrator, scripted_backend
    ):
        def broken(snapshot):
            raise ValueError("listener bug")

        async with make_orchestrator(scripted_backend()) as orchestrator:
            orchestrator.subscribe(broken)
            orchestrator.update_content("one")
            orchestrator.update_content("two")
            await orchestrator.settle()

            assert orchestrator.context.content == "two"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_events_sent_before_start_are_processed(
        self, make_orchestrator, scripted_backend
    ):
        orchestrator = make_orchestrator(scripted_backend())
        orchestrator.update_content("early")

        async with orchestrator:
            await orchestrator.settle()
            assert orchestrator.context.content == "early"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_settle_requires_running(self, make_orchestrator, scripted_backend):
        orchestrator = make_orchestrator(scripted_backend())
        with pytest.raises(RuntimeError, match="not running"):
            await orchestrator.settle()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_wait_for_times_out(self, make_orchestrator, scripted_backend):
        async with make_orchestrator(scripted_backend()) as orchestrator:
            with pytest.raises(asyncio.TimeoutError):
                await orchestrator.wait_for(State.SUCCESS, timeout=0.05)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stop_aborts_generation(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(hang=True)
        orchestrator = make_orchestrator(backend)
        await orchestrator.start()
        orchestrator.update_content("Hello world")
        orchestrator.continue_writing()
        await orchestrator.wait_for(State.LOADING, timeout=WAIT)

        await orchestrator.stop()

        assert not orchestrator.running


# =============================================================================
# Content updates
# =============================================================================


class TestUpdateContent:
    """Tests for UPDATE_CONTENT handling."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sanitized_in_idle(self, make_orchestrator, scripted_backend):
        async with make_orchestrator(scripted_backend()) as orchestrator:
            orchestrator.update_content("Hi\x00 there\x7f\n")
            await orchestrator.settle()

            assert orchestrator.state is State.IDLE
            assert orchestrator.context.content == "Hi there\n"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oversized_content_rejected(
        self, make_orchestrator, scripted_backend, monkeypatch
    ):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "20")

        async with make_orchestrator(scripted_backend()) as orchestrator:
            orchestrator.update_content("short")
            orchestrator.update_content("x" * 21)
            await orchestrator.settle()

            ctx = orchestrator.context
            assert orchestrator.state is State.IDLE
            assert ctx.content == "short"
            assert ctx.error.kind is ErrorKind.VALIDATION
            assert ctx.error.context["violations"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejection_cleared_outside_error_state(
        self, make_orchestrator, scripted_backend, monkeypatch
    ):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "20")

        async with make_orchestrator(scripted_backend(), error_grace_ms=50) as orchestrator:
            orchestrator.update_content("x" * 21)
            await orchestrator.settle()
            assert orchestrator.context.error.kind is ErrorKind.VALIDATION

            orchestrator.clear_error()
            await orchestrator.settle()
            assert orchestrator.state is State.IDLE
            assert orchestrator.context.error is None

            await asyncio.sleep(0.2)
            orchestrator.update_content("valid")
            await orchestrator.settle()

            assert orchestrator.context.error is None
            assert orchestrator.context.content == "valid"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejection_expires_after_grace(
        self, make_orchestrator, scripted_backend, monkeypatch
    ):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "20")

        async with make_orchestrator(scripted_backend(), error_grace_ms=50) as orchestrator:
            orchestrator.update_content("x" * 21)
            await orchestrator.settle()
            assert orchestrator.context.error is not None

            await asyncio.sleep(0.2)
            await orchestrator.settle()

            assert orchestrator.state is State.IDLE
            assert orchestrator.context.error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_valid_update_clears_rejection(
        self, make_orchestrator, scripted_backend, monkeypatch
    ):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "20")

        async with make_orchestrator(scripted_backend()) as orchestrator:
            orchestrator.update_content("x" * 21)
            orchestrator.update_content("fits")
            await orchestrator.settle()

            assert orchestrator.context.error is None
            assert orchestrator.context.content == "fits"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refused_start_error_expires(
        self, make_orchestrator, scripted_backend, monkeypatch
    ):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "20")
        backend = scripted_backend(hang=True)

        async with make_orchestrator(backend, error_grace_ms=50) as orchestrator:
            orchestrator.update_content("Hello")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.LOADING, timeout=WAIT)

            orchestrator.update_content("y" * 30)
            orchestrator.cancel()
            orchestrator.continue_writing()
            await orchestrator.settle()
            assert orchestrator.context.error.kind is ErrorKind.VALIDATION

            await asyncio.sleep(0.2)
            await orchestrator.settle()

            assert orchestrator.state is State.IDLE
            assert orchestrator.context.error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stored_as_given_while_generating(
        self, make_orchestrator, scripted_backend
    ):
        backend = scripted_backend(hang=True)
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.LOADING, timeout=WAIT)

            orchestrator.update_content("Edited\x00 meanwhile")
            await orchestrator.settle()

            assert orchestrator.state is State.LOADING
            assert orchestrator.context.content == "Edited\x00 meanwhile"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_edit_during_stream_is_merged_into(
        self, make_orchestrator, scripted_backend
    ):
        backend = scripted_backend("The sun", delay_ms=20)
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.STREAMING, timeout=WAIT)

            orchestrator.update_content("Goodbye world")
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.content == "Goodbye world The sun"


# =============================================================================
# Generation lifecycle
# =============================================================================


class TestGeneration:
    """End-to-end continue-writing scenarios."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hello_world(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(["The", " ", "sun"])
        async with make_orchestrator(backend) as orchestrator:
            states = _record_states(orchestrator)

            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            success = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert success.context.content == "Hello world The sun"
            assert success.context.generated_text == "The sun"
            assert success.context.streaming_buffer == ""
            assert success.context.generation_count == 1
            assert success.context.last_generation_time is not None

            idle = await orchestrator.wait_for(State.IDLE, timeout=WAIT)

            assert idle.context.content == "Hello world The sun"
            assert idle.context.generation_count == 1
            assert idle.context.error is None
            assert states == [
                State.IDLE,
                State.LOADING,
                State.STREAMING,
                State.SUCCESS,
                State.IDLE,
            ]
            assert backend.seeds == ["Hello world"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tokens_arrive_in_order(self, make_orchestrator, scripted_backend):
        backend = scripted_backend("one two three four", delay_ms=5)
        async with make_orchestrator(backend) as orchestrator:
            buffers = []
            orchestrator.subscribe(
                lambda s: s.state is State.STREAMING and buffers.append(s.context.streaming_buffer)
            )

            orchestrator.update_content("Count:")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert buffers == [
                "one",
                "one ",
                "one two",
                "one two ",
                "one two three",
                "one two three ",
                "one two three four",
            ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_continue_again_from_success(self, make_orchestrator, scripted_backend):
        backend = scripted_backend()
        async with make_orchestrator(backend, success_grace_ms=5000) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            orchestrator.continue_writing()
            await orchestrator.wait_for(State.LOADING, timeout=WAIT)
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.content == "Hello world The sun The sun"
            assert snapshot.context.generation_count == 2
            assert backend.seeds == ["Hello world", "Hello world The sun"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_content_does_not_start(self, make_orchestrator, scripted_backend):
        backend = scripted_backend()
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("   \n")
            orchestrator.continue_writing()
            await orchestrator.settle()

            assert orchestrator.state is State.IDLE
            assert orchestrator.context.error is None
            assert backend.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_content_surfaces_validation_error(
        self, make_orchestrator, scripted_backend, monkeypatch
    ):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "20")
        backend = scripted_backend(hang=True)

        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.LOADING, timeout=WAIT)

            # Bypasses validation while generating
            orchestrator.update_content("y" * 30)
            orchestrator.cancel()
            orchestrator.continue_writing()
            await orchestrator.settle()

            ctx = orchestrator.context
            assert orchestrator.state is State.IDLE
            assert ctx.error.kind is ErrorKind.VALIDATION
            assert ctx.content == "y" * 30

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_request_rejected(self, make_orchestrator, scripted_backend):
        backend = scripted_backend("a b c d e f", delay_ms=10)
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.STREAMING, timeout=WAIT)

            orchestrator.continue_writing()
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert backend.calls == 1
            assert snapshot.context.content == "Hello world a b c d e f"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_streaming_mode(self, make_orchestrator, scripted_backend):
        backend = scripted_backend("The sun")
        async with make_orchestrator(backend, streaming=False) as orchestrator:
            states = _record_states(orchestrator)

            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.content == "Hello world The sun"
            assert State.STREAMING not in states

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset_mid_stream(self, make_orchestrator, scripted_backend):
        backend = scripted_backend("a b c d e f g h", delay_ms=20)
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.STREAMING, timeout=WAIT)

            orchestrator.reset()
            await orchestrator.settle()
            await asyncio.sleep(0.1)

            assert orchestrator.state is State.IDLE
            assert orchestrator.context == GenerationContext()


# =============================================================================
# Cancellation
# =============================================================================


class TestCancel:
    """Tests for CANCEL handling."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_before_first_token(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(hang=True)
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.LOADING, timeout=WAIT)

            orchestrator.cancel()
            snapshot = await orchestrator.wait_for(State.IDLE, timeout=WAIT)
            await asyncio.sleep(0.05)

            assert orchestrator.state is State.IDLE
            assert snapshot.context.content == "Hello world"
            assert snapshot.context.error is None
            assert snapshot.context.generation_count == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_mid_stream(self, make_orchestrator, scripted_backend):
        backend = scripted_backend("one two three four five six", delay_ms=20)
        async with make_orchestrator(backend) as orchestrator:
            states = _record_states(orchestrator)
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.STREAMING, timeout=WAIT)

            orchestrator.cancel()
            await orchestrator.wait_for(State.IDLE, timeout=WAIT)
            await asyncio.sleep(0.2)

            ctx = orchestrator.context
            assert orchestrator.state is State.IDLE
            assert ctx.content == "Hello world"
            assert ctx.streaming_buffer == ""
            assert ctx.error is None
            assert ctx.generation_count == 0
            assert State.SUCCESS not in states
            assert len(backend.emitted) < len(backend.tokens)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_ignored(self, make_orchestrator, scripted_backend):
        async with make_orchestrator(scripted_backend()) as orchestrator:
            orchestrator.cancel()
            await orchestrator.settle()
            assert orchestrator.state is State.IDLE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_new_generation_after_cancel(self, make_orchestrator, scripted_backend):
        backend = scripted_backend("The sun", delay_ms=20)
        async with make_orchestrator(backend) as orchestrator:
            orchestrator.update_content("Hello world")
            orchestrator.continue_writing()
            await orchestrator.wait_for(State.STREAMING, timeout=WAIT)
            orchestrator.cancel()
            orchestrator.continue_writing()

            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.content == "Hello world The sun"
            assert snapshot.context.generation_count == 1


# =============================================================================
# Errors and retries
# =============================================================================


class TestErrors:
    """Tests for failure handling, CLEAR_ERROR and RETRY."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backend_failure(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=RuntimeError("model overloaded"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            ctx = orchestrator.context
            assert ctx.error.kind is ErrorKind.GENERATION
            assert ctx.error.context["content_length"] == len("Hello world")
            assert ctx.content == "Hello world"
            assert ctx.generated_text == ""
            assert ctx.streaming_buffer == ""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_message_classified_as_network(
        self, make_orchestrator, scripted_backend
    ):
        backend = scripted_backend(error=RuntimeError("gateway timeout"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)
            assert orchestrator.context.error.kind is ErrorKind.NETWORK

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_deadline(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(hang=True)
        async with make_orchestrator(backend, stream_timeout_ms=30) as orchestrator:
            await _fail_once(orchestrator)

            error = orchestrator.context.error
            assert error.kind is ErrorKind.TIMEOUT
            assert error.context["timeout_ms"] == 30

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_clears_after_grace(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"))
        async with make_orchestrator(backend, error_grace_ms=50) as orchestrator:
            await _fail_once(orchestrator)

            snapshot = await orchestrator.wait_for(State.IDLE, timeout=WAIT)

            assert snapshot.context.error is None
            assert snapshot.context.content == "Hello world"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clear_error(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            orchestrator.clear_error()
            await orchestrator.settle()

            assert orchestrator.state is State.IDLE
            assert orchestrator.context.error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_continue_from_error(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"), fail_first=1)
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            orchestrator.continue_writing()
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.error is None
            assert snapshot.context.retry_count == 0
            assert snapshot.context.content == "Hello world The sun"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_recovers(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"), fail_first=1)
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            orchestrator.retry()
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.retry_count == 1
            assert snapshot.context.generation_count == 1
            assert backend.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_budget_exhausted(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            for _ in range(2):
                orchestrator.retry()
                await orchestrator.wait_for(State.LOADING, timeout=WAIT)
                await orchestrator.wait_for(State.ERROR, timeout=WAIT)

            orchestrator.retry()
            await orchestrator.settle()

            ctx = orchestrator.context
            assert orchestrator.state is State.ERROR
            assert ctx.retry_count == 2
            assert ctx.error.kind is ErrorKind.NETWORK
            assert ctx.error.exhausted
            assert "Retry limit reached" in ctx.error.message
            assert backend.calls == 3

            # Further retries change nothing
            orchestrator.retry()
            await orchestrator.settle()
            assert backend.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_after_automatic_attempts(self, make_orchestrator, scripted_backend):
        """Full requests retry on their own first; a caller may still retry after."""
        backend = scripted_backend(error=NetworkError("connection reset"), fail_first=2)
        async with make_orchestrator(backend, streaming=False) as orchestrator:
            await _fail_once(orchestrator)

            error = orchestrator.context.error
            assert error.exhausted
            assert error.context["attempts"] == 2
            assert backend.calls == 2

            orchestrator.retry()
            snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=WAIT)

            assert snapshot.context.content == "Hello world The sun"
            assert backend.calls == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_retried_once(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=EditorError("backend confused"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)
            assert orchestrator.context.error.kind is ErrorKind.UNKNOWN

            orchestrator.retry()
            await orchestrator.wait_for(State.LOADING, timeout=WAIT)
            await orchestrator.wait_for(State.ERROR, timeout=WAIT)

            orchestrator.retry()
            await orchestrator.settle()

            assert orchestrator.context.error.exhausted
            assert backend.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_content_in_error_state(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            orchestrator.update_content("Hello again\x00")
            await orchestrator.settle()

            assert orchestrator.state is State.ERROR
            assert orchestrator.context.content == "Hello again"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset_from_error(self, make_orchestrator, scripted_backend):
        backend = scripted_backend(error=NetworkError("connection refused"))
        async with make_orchestrator(backend) as orchestrator:
            await _fail_once(orchestrator)

            orchestrator.reset()
            await orchestrator.settle()

            assert orchestrator.state is State.IDLE
            assert orchestrator.context == GenerationContext()
