"""Core utilities shared across quillstream."""

from .log import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
