"""Continuation generator.

Provides the StreamingGenerator class that guards a pluggable backend with
the Content Guard, cancellation checks, the Timeout Guard and the Retry Policy.
"""

from .lib import GeneratorConfig, StreamingGenerator

__all__ = [
    "StreamingGenerator",
    "GeneratorConfig",
]
