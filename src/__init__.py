"""quillstream: generation orchestration for continue-writing editors."""

from src.errors import ClassifiedError, ErrorKind, classify
from src.guard import sanitize, validate
from src.llm import StreamingGenerator, create_backend
from src.machine import GenerationOrchestrator, OrchestratorConfig, State

__all__ = [
    # Orchestrator
    "GenerationOrchestrator",
    "OrchestratorConfig",
    "State",
    # Generation
    "StreamingGenerator",
    "create_backend",
    # Errors
    "ClassifiedError",
    "ErrorKind",
    "classify",
    # Guard
    "validate",
    "sanitize",
]
