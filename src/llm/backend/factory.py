"""Backend factory for creating generation backends by name.

Provides a unified entry point for creating any supported backend.
"""

from enum import Enum

from .base import GenerationBackend
from .synthetic import StaticBackend, SyntheticBackend


class BackendType(str, Enum):
    """Available generation backends."""

    SYNTHETIC = "synthetic"
    STATIC = "static"


def create_backend(
    backend: str | BackendType = BackendType.SYNTHETIC,
    **kwargs,
) -> GenerationBackend:
    """Create a generation backend.

    Args:
        backend: Backend name or BackendType.
        **kwargs: Arguments passed to the backend constructor
            (e.g., failure_rate, delay_range_ms, or text for static).

    Returns:
        Configured GenerationBackend instance.

    Raises:
        ValueError: If the backend name is unknown or arguments are missing.

    Example:
        >>> backend = create_backend("synthetic", failure_rate=0.1)
        >>> backend = create_backend(BackendType.STATIC, text="The end.")
    """
    try:
        backend_type = BackendType(backend)
    except ValueError:
        available = ", ".join(t.value for t in BackendType)
        raise ValueError(f"Unknown backend: {backend}. Available: {available}") from None

    if backend_type is BackendType.STATIC:
        if "text" not in kwargs:
            raise ValueError("Static backend requires 'text'")
        text = kwargs.pop("text")
        return StaticBackend(text, **kwargs)

    return SyntheticBackend(**kwargs)


__all__ = ["BackendType", "create_backend"]
