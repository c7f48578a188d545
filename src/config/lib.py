"""Centralized environment configuration management for quillstream.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from src.config import EnvVar, get_environment
    >>>
    >>> # Get values with automatic type conversion
    >>> timeout = get_environment(EnvVar.GENERATION_TIMEOUT_MS)  # Returns int
    >>> rate = get_environment(EnvVar.FAILURE_RATE)  # Returns float
    >>>
    >>> # Override at runtime
    >>> timeout = get_environment(EnvVar.GENERATION_TIMEOUT_MS, override=500)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "GENERATION_TIMEOUT_MS").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by quillstream.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - generation: Backend timing, deadlines and failure injection
        - retry: Retry policy limits and backoff
        - machine: Orchestrator grace periods
        - guard: Content limits
        - logging: Log output
    """

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------
    GENERATION_TIMEOUT_MS = EnvConfig(
        name="GENERATION_TIMEOUT_MS",
        default=10_000,
        var_type=int,
        description="Deadline for a full (non-streaming) generation request",
        category="generation",
    )
    STREAM_TIMEOUT_MS = EnvConfig(
        name="STREAM_TIMEOUT_MS",
        default=30_000,
        var_type=int,
        description="Overall deadline for a streamed generation",
        category="generation",
    )
    TOKEN_TIMEOUT_MS = EnvConfig(
        name="TOKEN_TIMEOUT_MS",
        default=None,
        var_type=int,
        description="Deadline between two streamed tokens (unset = no limit)",
        category="generation",
    )
    TOKEN_DELAY_MIN_MS = EnvConfig(
        name="TOKEN_DELAY_MIN_MS",
        default=50,
        var_type=int,
        description="Lower bound of the synthetic per-token delay",
        category="generation",
    )
    TOKEN_DELAY_MAX_MS = EnvConfig(
        name="TOKEN_DELAY_MAX_MS",
        default=150,
        var_type=int,
        description="Upper bound of the synthetic per-token delay",
        category="generation",
    )
    FAILURE_RATE = EnvConfig(
        name="FAILURE_RATE",
        default=0.0,
        var_type=float,
        description="Probability (0-1) of a synthetic failure before the first token",
        category="generation",
    )
    STREAMING_ENABLED = EnvConfig(
        name="STREAMING_ENABLED",
        default=True,
        var_type=bool,
        description="Stream tokens (true) or request the full text at once (false)",
        category="generation",
    )

    # -------------------------------------------------------------------------
    # Retry Policy
    # -------------------------------------------------------------------------
    RETRY_MAX_ATTEMPTS = EnvConfig(
        name="RETRY_MAX_ATTEMPTS",
        default=3,
        var_type=int,
        description="Attempts made by the retry policy for a full generation",
        category="retry",
    )
    RETRY_BASE_DELAY_MS = EnvConfig(
        name="RETRY_BASE_DELAY_MS",
        default=1_000,
        var_type=int,
        description="Base delay for linear retry backoff",
        category="retry",
    )
    MAX_USER_RETRIES = EnvConfig(
        name="MAX_USER_RETRIES",
        default=3,
        var_type=int,
        description="RETRY events accepted for one request before giving up",
        category="retry",
    )

    # -------------------------------------------------------------------------
    # Orchestrator
    # -------------------------------------------------------------------------
    SUCCESS_GRACE_MS = EnvConfig(
        name="SUCCESS_GRACE_MS",
        default=150,
        var_type=int,
        description="Delay before the success state returns to idle",
        category="machine",
    )
    ERROR_GRACE_MS = EnvConfig(
        name="ERROR_GRACE_MS",
        default=10_000,
        var_type=int,
        description="Delay before a surfaced error clears itself",
        category="machine",
    )

    # -------------------------------------------------------------------------
    # Content Guard
    # -------------------------------------------------------------------------
    MAX_CONTENT_LENGTH = EnvConfig(
        name="MAX_CONTENT_LENGTH",
        default=50_000,
        var_type=int,
        description="Maximum accepted document length in characters",
        category="guard",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    LOG_LEVEL = EnvConfig(
        name="LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
        category="logging",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is float:
        try:
            return float(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: bool) -> bool: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type (str, int, float or bool).

    Example:
        >>> get_environment(EnvVar.SUCCESS_GRACE_MS)
        150
        >>> get_environment(EnvVar.SUCCESS_GRACE_MS, override=10)
        10
    """
    config: EnvConfig = env_var.value

    # Override takes highest priority
    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def get_log_level(override: str | int | None = None) -> int:
    """Resolve the configured log level to a `logging` constant.

    Unknown level names fall back to INFO.
    """
    if isinstance(override, int):
        return override

    name = str(get_environment(EnvVar.LOG_LEVEL, override=override)).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_token_delay_range() -> tuple[int, int]:
    """Get the synthetic per-token delay bounds in milliseconds.

    Bounds are swapped if configured the wrong way round.
    """
    low = get_environment(EnvVar.TOKEN_DELAY_MIN_MS)
    high = get_environment(EnvVar.TOKEN_DELAY_MAX_MS)
    return (low, high) if low <= high else (high, low)


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (generation, retry, machine, guard,
                 logging). None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


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
