"""Generation layer for continue-writing requests.

This module provides the pluggable backend interface and the guarded
streaming generator the orchestrator drives.

Main components:
- StreamingGenerator: Validates seeds, streams tokens, honours cancellation
- GenerationBackend: Abstract interface for continuation providers
- create_backend: Factory function for creating backends

Bundled backends:
- synthetic: Canned continuations with jittered token delays and optional
  failure injection
- static: Always continues with a fixed text

Example:
    >>> from src.llm import StreamingGenerator
    >>> from src.resilience import CancellationToken
    >>> generator = StreamingGenerator()
    >>> async for token in generator.stream("Once upon a time", CancellationToken()):
    ...     print(token, end="")

    >>> # With a specific backend
    >>> from src.llm import create_backend
    >>> generator = StreamingGenerator(backend=create_backend("static", text="The end."))
"""

from .backend import (
    CONTINUATIONS,
    BackendType,
    ContinuationPolicy,
    GenerationBackend,
    LengthBiasedPolicy,
    StaticBackend,
    SyntheticBackend,
    create_backend,
    tokenize,
)
from .generator import GeneratorConfig, StreamingGenerator

__all__ = [
    # Main API
    "StreamingGenerator",
    "GeneratorConfig",
    "create_backend",
    "tokenize",
    # Backend types
    "GenerationBackend",
    "BackendType",
    "SyntheticBackend",
    "StaticBackend",
    "ContinuationPolicy",
    "LengthBiasedPolicy",
    "CONTINUATIONS",
]
