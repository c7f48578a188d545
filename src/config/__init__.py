"""Centralized configuration management for quillstream.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from src.config import EnvVar, get_environment
    >>>
    >>> # Get any environment variable with automatic type conversion
    >>> grace = get_environment(EnvVar.ERROR_GRACE_MS)  # Returns int: 10000
    >>>
    >>> # Override at runtime
    >>> grace = get_environment(EnvVar.ERROR_GRACE_MS, override=500)
    >>>
    >>> # List available variables by category
    >>> for var in list_environment_variables("retry"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    generation: Deadlines, synthetic token delays and failure injection
    retry: Retry policy attempts and backoff
    machine: Orchestrator grace periods
    guard: Content Guard limits
    logging: Log level
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_environment,
    get_environment_info,
    get_log_level,
    get_token_delay_range,
    # Introspection
    list_environment_variables,
)

__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_log_level",
    "get_token_delay_range",
    # Introspection
    "list_environment_variables",
]
