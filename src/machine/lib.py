"""GenerationOrchestrator: the continue-writing state machine.

One runner task drains an event queue in arrival order and is the only
writer of the GenerationContext. The generation producer and the grace
timers run independently and report back through the same queue:

    caller ─┐
    producer├─> queue ─> runner ─> transition ─> snapshot ─> subscribers
    timer  ─┘

Producer events carry the generation id they belong to and timer events
carry the serial that scheduled them (a state entry, or an error surfaced
outside the error state); anything from a superseded attempt, an exited
state or a replaced error is dropped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable

from src.config import EnvVar, get_environment
from src.errors import (
    ClassifiedError,
    ContentValidationError,
    classify,
    log_error,
)
from src.guard import check, sanitize
from src.llm.generator import StreamingGenerator
from src.resilience import (
    CancellationToken,
    RetryConfig,
    RetryStrategy,
    with_timeout,
)

from .merge import merge_content
from .models import Event, EventType, GenerationContext, Snapshot, State

logger = logging.getLogger(__name__)

Listener = Callable[[Snapshot], None]


@dataclass
class OrchestratorConfig:
    """Configuration for GenerationOrchestrator.

    Attributes:
        streaming: Stream tokens (True) or request the full text at once.
        stream_timeout_ms: Overall deadline for one streamed generation.
        success_grace_ms: Time spent in success before returning to idle.
        error_grace_ms: Time an error stays surfaced before clearing itself.
        retry: Limits for caller-requested retries.
    """

    streaming: bool = True
    stream_timeout_ms: float | None = 30_000
    success_grace_ms: float = 150
    error_grace_ms: float = 10_000
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_environment(cls) -> "OrchestratorConfig":
        """Build a config from environment variables."""
        return cls(
            streaming=get_environment(EnvVar.STREAMING_ENABLED),
            stream_timeout_ms=get_environment(EnvVar.STREAM_TIMEOUT_MS),
            success_grace_ms=get_environment(EnvVar.SUCCESS_GRACE_MS),
            error_grace_ms=get_environment(EnvVar.ERROR_GRACE_MS),
            retry=RetryConfig.from_environment(),
        )


class GenerationOrchestrator:
    """Drives one continue-writing request at a time.

    Callers only enqueue events and read snapshots. Exactly one generation
    is in flight; CONTINUE_WRITING while loading or streaming is rejected.

    Example:
        >>> async with GenerationOrchestrator() as orchestrator:
        ...     orchestrator.update_content("Hello world")
        ...     orchestrator.continue_writing()
        ...     await orchestrator.wait_for(State.SUCCESS, timeout=15)
        ...     print(orchestrator.context.content)
    """

    def __init__(
        self,
        generator: StreamingGenerator | None = None,
        config: OrchestratorConfig | None = None,
    ):
        """Initialize GenerationOrchestrator.

        Args:
            generator: Streaming generator. Creates one over the default
                backend if None.
            config: Orchestrator configuration.
        """
        self._generator = generator or StreamingGenerator()
        self._config = config or OrchestratorConfig.from_environment()
        self._strategy = RetryStrategy(self._config.retry)

        self._state = State.IDLE
        self._context = GenerationContext()
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._listeners: list[Listener] = []

        self._runner: asyncio.Task | None = None
        self._producer: asyncio.Task | None = None
        self._cancel_token: CancellationToken | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._notice_timer: asyncio.TimerHandle | None = None
        self._generation_id = 0
        self._serial = 0
        self._notice_serial = 0

        self._handlers: dict[EventType, Callable[[Event], None]] = {
            EventType.UPDATE_CONTENT: self._on_update_content,
            EventType.CONTINUE_WRITING: self._on_continue_writing,
            EventType.CANCEL: self._on_cancel,
            EventType.CLEAR_ERROR: self._on_clear_error,
            EventType.RETRY: self._on_retry,
            EventType.RESET: self._on_reset,
            EventType.STREAM_TOKEN: self._on_stream_token,
            EventType.STREAM_COMPLETE: self._on_stream_complete,
            EventType.GENERATION_COMPLETE: self._on_generation_complete,
            EventType.GENERATION_ERROR: self._on_generation_error,
            EventType.GRACE_EXPIRED: self._on_grace_expired,
            EventType.ERROR_EXPIRED: self._on_error_expired,
        }

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def state(self) -> State:
        return self._state

    @property
    def context(self) -> GenerationContext:
        """Deep copy of the current context."""
        return self._context.model_copy(deep=True)

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def snapshot(self) -> Snapshot:
        return Snapshot(state=self._state, context=self.context)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state or context changes.

        Args:
            listener: Called with a Snapshot after every event that changed
                the state or the context.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def settle(self) -> None:
        """Wait until every event queued so far has been processed."""
        if not self.running:
            raise RuntimeError("Orchestrator is not running")
        await self._queue.join()

    async def wait_for(self, state: State, timeout: float | None = None) -> Snapshot:
        """Wait until the orchestrator enters a state.

        Args:
            state: State to wait for.
            timeout: Seconds to wait. None waits forever.

        Returns:
            Snapshot taken when the state was reached.

        Raises:
            asyncio.TimeoutError: If the state is not reached in time.
        """
        if self._state == state:
            return self.snapshot()

        reached: asyncio.Future[Snapshot] = asyncio.get_running_loop().create_future()

        def listener(snapshot: Snapshot) -> None:
            if snapshot.state == state and not reached.done():
                reached.set_result(snapshot)

        unsubscribe = self.subscribe(listener)
        try:
            return await asyncio.wait_for(reached, timeout)
        finally:
            unsubscribe()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the runner task. Events sent earlier are processed first."""
        if self.running:
            return
        self._runner = asyncio.create_task(self._run(), name="orchestrator-runner")
        logger.debug("Orchestrator started")

    async def stop(self) -> None:
        """Abort in-flight work and stop the runner."""
        self._cancel_timer()
        self._cancel_notice()
        producer = self._producer
        self._abort_generation("stopped")
        if producer is not None:
            await asyncio.gather(producer, return_exceptions=True)

        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        logger.debug("Orchestrator stopped")

    async def __aenter__(self) -> "GenerationOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # =========================================================================
    # Inbound events
    # =========================================================================

    def send(self, event: Event) -> None:
        """Queue an event for processing."""
        self._queue.put_nowait(event)

    def update_content(self, content: str) -> None:
        self.send(Event.update_content(content))

    def continue_writing(self) -> None:
        self.send(Event.continue_writing())

    def cancel(self) -> None:
        self.send(Event.cancel())

    def clear_error(self) -> None:
        self.send(Event.clear_error())

    def retry(self) -> None:
        self.send(Event.retry())

    def reset(self) -> None:
        self.send(Event.reset())

    # =========================================================================
    # Runner
    # =========================================================================

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._dispatch(event)
            except Exception:
                logger.exception(f"Failed to process {event.type.value}")
            finally:
                self._queue.task_done()

    def _dispatch(self, event: Event) -> None:
        previous_state = self._state
        previous_context = self._context.model_copy(deep=True)

        self._handlers[event.type](event)

        if self._state != previous_state or self._context != previous_context:
            self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")

    def _enter(self, state: State) -> None:
        self._cancel_timer()
        if self._state.is_generating and not state.is_generating:
            self._cancel_token = None
            self._producer = None

        logger.debug(f"{self._state.value} -> {state.value}")
        self._state = state
        self._serial += 1

        if state is State.LOADING:
            self._enter_loading()
        elif state is State.SUCCESS:
            self._enter_success()
        elif state is State.ERROR:
            self._enter_error()

    # =========================================================================
    # Entry actions
    # =========================================================================

    def _enter_loading(self) -> None:
        ctx = self._context
        ctx.streaming_buffer = ""
        ctx.generated_text = ""
        ctx.last_generation_time = datetime.now(UTC)

        self._generation_id += 1
        self._cancel_token = CancellationToken()
        self._producer = asyncio.create_task(
            self._produce(self._generation_id, ctx.content, self._cancel_token),
            name=f"generation-{self._generation_id}",
        )

    def _enter_success(self) -> None:
        ctx = self._context
        ctx.content = merge_content(ctx.content, ctx.generated_text)
        ctx.generation_count += 1
        ctx.streaming_buffer = ""
        ctx.error = None
        logger.info(
            f"Generation {self._generation_id} merged "
            f"({len(ctx.generated_text)} characters, total {ctx.generation_count})"
        )
        self._schedule_grace(self._config.success_grace_ms)

    def _enter_error(self) -> None:
        if self._context.error is not None:
            log_error(self._context.error, "GenerationOrchestrator", logger)
        self._schedule_grace(self._config.error_grace_ms)

    # =========================================================================
    # Handlers
    # =========================================================================

    def _on_update_content(self, event: Event) -> None:
        content = event.content or ""
        if self._state.is_generating:
            # Edits during generation are stored as typed
            self._context.content = content
            return

        try:
            self._context.content = check(content)
        except ContentValidationError as e:
            self._surface_error(classify(e))
            logger.warning(f"Content update rejected: {e.message}")
            return

        # Accepted content supersedes an earlier rejection
        if self._state is not State.ERROR:
            self._dismiss_error()

    def _on_continue_writing(self, event: Event) -> None:
        if self._state.is_generating:
            logger.debug(f"CONTINUE_WRITING rejected while {self._state.value}")
            return

        content = self._context.content
        if not sanitize(content).strip():
            logger.debug("CONTINUE_WRITING ignored for empty content")
            return
        try:
            check(content)
        except ContentValidationError as e:
            self._surface_error(classify(e))
            logger.warning(f"Generation not started: {e.message}")
            return

        self._context.retry_count = 0
        self._dismiss_error()
        self._context.generated_text = ""
        self._enter(State.LOADING)

    def _on_cancel(self, event: Event) -> None:
        if not self._state.is_generating:
            return
        self._abort_generation("user")
        self._context.streaming_buffer = ""
        self._enter(State.IDLE)

    def _on_clear_error(self, event: Event) -> None:
        if self._state.is_generating:
            return
        self._dismiss_error()
        if self._state is State.ERROR:
            self._enter(State.IDLE)

    def _on_retry(self, event: Event) -> None:
        error = self._context.error
        if self._state is not State.ERROR or error is None:
            return
        if error.context.get("retry_limit_reached"):
            return

        retries = self._context.retry_count
        if not self._strategy.should_retry(error, retries):
            self._context.error = ClassifiedError(
                kind=error.kind,
                message=f"Retry limit reached after {retries} retries: {error.message}",
                context={
                    **error.context,
                    "retry_count": retries,
                    "retry_limit_reached": True,
                    "exhausted": True,
                },
            )
            logger.warning(f"Retry refused for {error.kind.value} error after {retries} retries")
            return

        self._context.retry_count = retries + 1
        self._context.error = None
        logger.info(f"Retrying generation ({retries + 1}/{self._strategy.retry_limit(error)})")
        self._enter(State.LOADING)

    def _on_reset(self, event: Event) -> None:
        self._abort_generation("reset")
        self._cancel_notice()
        self._context = GenerationContext()
        self._enter(State.IDLE)

    def _on_stream_token(self, event: Event) -> None:
        if not self._is_current(event) or self._cancel_token.cancelled:
            return
        self._context.streaming_buffer += event.token or ""
        if self._state is State.LOADING:
            self._enter(State.STREAMING)

    def _on_stream_complete(self, event: Event) -> None:
        if not self._is_current(event):
            return
        self._context.generated_text = self._context.streaming_buffer
        self._context.streaming_buffer = ""
        self._enter(State.SUCCESS)

    def _on_generation_complete(self, event: Event) -> None:
        if not self._is_current(event):
            return
        self._context.generated_text = event.text or ""
        self._enter(State.SUCCESS)

    def _on_generation_error(self, event: Event) -> None:
        if not self._is_current(event):
            return
        self._context.error = event.error
        self._context.streaming_buffer = ""
        self._context.generated_text = ""
        self._enter(State.ERROR)

    def _on_grace_expired(self, event: Event) -> None:
        if event.serial != self._serial:
            return
        if self._state is State.ERROR:
            self._context.error = None
            self._enter(State.IDLE)
        elif self._state is State.SUCCESS:
            self._enter(State.IDLE)

    def _on_error_expired(self, event: Event) -> None:
        if event.serial != self._notice_serial:
            return
        if self._state.is_generating or self._state is State.ERROR:
            return
        self._dismiss_error()

    # =========================================================================
    # Generation
    # =========================================================================

    def _is_current(self, event: Event) -> bool:
        return self._state.is_generating and event.generation_id == self._generation_id

    async def _produce(
        self,
        generation_id: int,
        content: str,
        cancel_token: CancellationToken,
    ) -> None:
        """Run one generation attempt and report back through the queue."""
        try:
            if self._config.streaming:
                await with_timeout(
                    self._forward_tokens(generation_id, content, cancel_token),
                    self._config.stream_timeout_ms,
                    cancel_token=cancel_token,
                )
                if not cancel_token.cancelled:
                    self.send(Event.stream_complete(generation_id))
            else:
                text = await self._generator.generate(content)
                if not cancel_token.cancelled:
                    self.send(Event.generation_complete(text, generation_id))
        except Exception as e:
            error = classify(e, content_length=len(content))
            self.send(Event.generation_error(error, generation_id))

    async def _forward_tokens(
        self,
        generation_id: int,
        content: str,
        cancel_token: CancellationToken,
    ) -> None:
        async for token in self._generator.stream(content, cancel_token):
            self.send(Event.stream_token(token, generation_id))

    def _abort_generation(self, reason: str) -> None:
        if self._cancel_token is not None:
            self._cancel_token.cancel(reason)
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()
        self._cancel_token = None
        self._producer = None

    # =========================================================================
    # Timers
    # =========================================================================

    def _schedule_grace(self, delay_ms: float) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            max(delay_ms, 0) / 1000, self.send, Event.grace_expired(self._serial)
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _surface_error(self, error: ClassifiedError) -> None:
        """Store an error without leaving the current state.

        Outside the error state the error gets its own grace timer, so it
        clears itself like an error-state failure does.
        """
        self._context.error = error
        if self._state is State.ERROR:
            return
        self._cancel_notice()
        self._notice_serial += 1
        loop = asyncio.get_running_loop()
        self._notice_timer = loop.call_later(
            max(self._config.error_grace_ms, 0) / 1000,
            self.send,
            Event.error_expired(self._notice_serial),
        )

    def _dismiss_error(self) -> None:
        self._cancel_notice()
        self._context.error = None

    def _cancel_notice(self) -> None:
        if self._notice_timer is not None:
            self._notice_timer.cancel()
            self._notice_timer = None


__all__ = ["GenerationOrchestrator", "OrchestratorConfig"]
