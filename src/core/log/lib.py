"""Core logging implementation for quillstream.

Every module logs through `logging.getLogger(__name__)`; the CLI calls
`setup_logging` once before dispatching a command.
"""

import logging
import sys
from typing import Optional, TextIO

from src.config import get_log_level

__all__ = ["get_logger", "setup_logging"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that stay at WARNING unless debugging is on
NOISY_LOGGERS = ("asyncio",)


def setup_logging(
    level: int | str | None = None,
    stream: Optional[TextIO] = None,
) -> int:
    """Configure root logging for the CLI.

    Args:
        level: Logging level as a constant or a name like "debug". Falls back
            to LOG_LEVEL from the environment.
        stream: Output stream. Defaults to the current sys.stderr.

    Returns:
        The resolved logging level.
    """
    resolved = get_log_level(level)
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        stream=stream or sys.stderr,
    )

    quiet = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return resolved


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name or "quillstream")
