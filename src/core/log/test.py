"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import get_logger, setup_logging


@pytest.fixture
def clean_root():
    """Give basicConfig an unconfigured root logger and restore it afterwards."""
    root = logging.getLogger()
    asyncio_logger = logging.getLogger("asyncio")
    saved = root.handlers[:], root.level, asyncio_logger.level
    root.handlers = []
    yield root
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    asyncio_logger.setLevel(saved[2])


class TestLogging:
    """Test core logging API."""

    @pytest.mark.unit
    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    @pytest.mark.unit
    def test_get_logger_default_name(self) -> None:
        assert get_logger().name == "quillstream"

    @pytest.mark.unit
    def test_setup_logging_writes_to_stream(self, clean_root) -> None:
        """Records reach the configured stream in the shared format."""
        stream = StringIO()
        setup_logging(level=logging.DEBUG, stream=stream)
        get_logger("test_setup").debug("test message")

        assert "test_setup - DEBUG - test message" in stream.getvalue()

    @pytest.mark.unit
    def test_level_by_name(self, clean_root) -> None:
        assert setup_logging("warning", stream=StringIO()) == logging.WARNING
        assert clean_root.level == logging.WARNING

    @pytest.mark.unit
    def test_level_from_environment(self, clean_root, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert setup_logging(stream=StringIO()) == logging.ERROR

    @pytest.mark.unit
    def test_asyncio_quiet_unless_debugging(self, clean_root) -> None:
        setup_logging(logging.INFO, stream=StringIO())
        assert logging.getLogger("asyncio").level == logging.WARNING

        clean_root.handlers = []
        setup_logging(logging.DEBUG, stream=StringIO())
        assert logging.getLogger("asyncio").level == logging.DEBUG
