"""Generation backend implementations.

Provides the abstract interface the core depends on, the whitespace-preserving
tokenizer, and the bundled offline backends.
"""

from .base import GenerationBackend, tokenize
from .factory import BackendType, create_backend
from .synthetic import (
    CONTINUATIONS,
    ContinuationPolicy,
    LengthBiasedPolicy,
    StaticBackend,
    SyntheticBackend,
)

__all__ = [
    # Base classes and helpers
    "GenerationBackend",
    "tokenize",
    # Implementations
    "SyntheticBackend",
    "StaticBackend",
    "ContinuationPolicy",
    "LengthBiasedPolicy",
    "CONTINUATIONS",
    # Factory
    "BackendType",
    "create_backend",
]
