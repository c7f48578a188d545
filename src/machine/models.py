"""Data models for the generation orchestrator.

Defines the state tags, the event vocabulary shared by callers, the producer
task and the grace timers, and the context the orchestrator owns.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from src.errors import ClassifiedError


class State(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    LOADING = "loading"  # Request accepted, no token yet
    STREAMING = "streaming"  # Tokens arriving
    SUCCESS = "success"  # Result merged, returns to idle after a grace period
    ERROR = "error"  # Failure surfaced, clears itself after a grace period

    @property
    def is_generating(self) -> bool:
        return self in (State.LOADING, State.STREAMING)


class EventType(str, Enum):
    """Event types accepted by the orchestrator."""

    # Inbound
    UPDATE_CONTENT = "UPDATE_CONTENT"
    CONTINUE_WRITING = "CONTINUE_WRITING"
    CANCEL = "CANCEL"
    CLEAR_ERROR = "CLEAR_ERROR"
    RETRY = "RETRY"
    RESET = "RESET"

    # Producer
    STREAM_TOKEN = "STREAM_TOKEN"
    STREAM_COMPLETE = "STREAM_COMPLETE"
    GENERATION_COMPLETE = "GENERATION_COMPLETE"
    GENERATION_ERROR = "GENERATION_ERROR"

    # Timers
    GRACE_EXPIRED = "GRACE_EXPIRED"
    ERROR_EXPIRED = "ERROR_EXPIRED"  # Error surfaced outside the error state


@dataclass(frozen=True)
class Event:
    """A message for the orchestrator.

    Attributes:
        type: What happened.
        content: New document text (UPDATE_CONTENT).
        token: Streamed text (STREAM_TOKEN).
        text: Full continuation (GENERATION_COMPLETE).
        error: Classified failure (GENERATION_ERROR).
        generation_id: Attempt a producer event belongs to.
        serial: State entry or surfaced error a timer event belongs to.
    """

    type: EventType
    content: str | None = None
    token: str | None = None
    text: str | None = None
    error: ClassifiedError | None = None
    generation_id: int | None = None
    serial: int | None = None

    @classmethod
    def update_content(cls, content: str) -> "Event":
        return cls(EventType.UPDATE_CONTENT, content=content)

    @classmethod
    def continue_writing(cls) -> "Event":
        return cls(EventType.CONTINUE_WRITING)

    @classmethod
    def cancel(cls) -> "Event":
        return cls(EventType.CANCEL)

    @classmethod
    def clear_error(cls) -> "Event":
        return cls(EventType.CLEAR_ERROR)

    @classmethod
    def retry(cls) -> "Event":
        return cls(EventType.RETRY)

    @classmethod
    def reset(cls) -> "Event":
        return cls(EventType.RESET)

    @classmethod
    def stream_token(cls, token: str, generation_id: int) -> "Event":
        return cls(EventType.STREAM_TOKEN, token=token, generation_id=generation_id)

    @classmethod
    def stream_complete(cls, generation_id: int) -> "Event":
        return cls(EventType.STREAM_COMPLETE, generation_id=generation_id)

    @classmethod
    def generation_complete(cls, text: str, generation_id: int) -> "Event":
        return cls(EventType.GENERATION_COMPLETE, text=text, generation_id=generation_id)

    @classmethod
    def generation_error(cls, error: ClassifiedError, generation_id: int) -> "Event":
        return cls(EventType.GENERATION_ERROR, error=error, generation_id=generation_id)

    @classmethod
    def grace_expired(cls, serial: int) -> "Event":
        return cls(EventType.GRACE_EXPIRED, serial=serial)

    @classmethod
    def error_expired(cls, serial: int) -> "Event":
        return cls(EventType.ERROR_EXPIRED, serial=serial)


class GenerationContext(BaseModel):
    """Everything the orchestrator knows about the document and the request.

    Only the orchestrator's transition logic writes to it; observers get
    deep copies.

    Attributes:
        content: Authoritative document text.
        streaming_buffer: Tokens received for the in-flight generation.
        generated_text: Finished continuation awaiting merge.
        error: Last surfaced failure.
        generation_count: Successful merges. Never decremented.
        retry_count: Retries of the current request.
        last_generation_time: When the latest attempt started.
    """

    content: str = ""
    streaming_buffer: str = ""
    generated_text: str = ""
    error: ClassifiedError | None = None
    generation_count: int = 0
    retry_count: int = 0
    last_generation_time: datetime | None = None


@dataclass(frozen=True)
class Snapshot:
    """State tag and context copy delivered to observers."""

    state: State
    context: GenerationContext


__all__ = ["State", "EventType", "Event", "GenerationContext", "Snapshot"]
