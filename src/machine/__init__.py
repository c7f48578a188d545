"""Generation orchestration state machine.

Governs one continue-writing request at a time: validates the document,
drives the streaming generator, surfaces classified failures and merges the
result back into the content.

Example:
    >>> from src.machine import GenerationOrchestrator, State
    >>> async with GenerationOrchestrator() as orchestrator:
    ...     orchestrator.update_content("Hello world")
    ...     orchestrator.continue_writing()
    ...     snapshot = await orchestrator.wait_for(State.SUCCESS, timeout=15)
"""

from .lib import GenerationOrchestrator, OrchestratorConfig
from .merge import merge_content
from .models import Event, EventType, GenerationContext, Snapshot, State

__all__ = [
    # Orchestrator
    "GenerationOrchestrator",
    "OrchestratorConfig",
    # Models
    "State",
    "EventType",
    "Event",
    "GenerationContext",
    "Snapshot",
    # Merge
    "merge_content",
]
