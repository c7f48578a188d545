"""Tests for the write and config CLI commands."""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Get the project root directory (two levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent


def _run(*args: str, **env: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, ".", *args],
        capture_output=True,
        text=True,
        cwd=PROJECT_ROOT,
        env={**os.environ, "TOKEN_DELAY_MIN_MS": "0", "TOKEN_DELAY_MAX_MS": "0", **env},
        timeout=60,
    )


@pytest.mark.integration
def test_write_with_static_backend():
    """write should stream the continuation and print the merged text."""
    result = _run("write", "Hello world", "-b", "static", "--static-text", "The sun")

    assert result.returncode == 0
    assert result.stdout.strip().splitlines()[-1] == "Hello world The sun"


@pytest.mark.integration
def test_write_without_streaming():
    """write --no-stream should print only the merged text."""
    result = _run(
        "write", "Hello world", "-b", "static", "--static-text", "The sun", "--no-stream"
    )

    assert result.returncode == 0
    assert result.stdout.strip() == "Hello world The sun"


@pytest.mark.integration
def test_write_with_synthetic_backend():
    """Short seeds get the descriptive opening continuation."""
    result = _run("write", "It was late")

    assert result.returncode == 0
    assert "It was late The morning sun" in result.stdout


@pytest.mark.integration
def test_write_reports_failure():
    """A failing backend exits non-zero with the classified error."""
    result = _run("write", "Hello world", "--failure-rate", "1.0")

    assert result.returncode == 1
    assert "error" in result.stderr


@pytest.mark.integration
def test_write_retries_without_streaming():
    """--retry keeps retrying a non-streamed failure until the user budget runs out."""
    result = _run(
        "write",
        "Hello world",
        "--failure-rate",
        "1.0",
        "--no-stream",
        "--retry",
        RETRY_MAX_ATTEMPTS="1",
        RETRY_BASE_DELAY_MS="0",
        MAX_USER_RETRIES="1",
    )

    assert result.returncode == 1
    assert "retrying" in result.stderr
    assert "Retry limit reached" in result.stderr


@pytest.mark.integration
def test_write_rejects_blank_text():
    """Blank text never starts a generation."""
    result = _run("write", "   ")

    assert result.returncode == 1
    assert "Generation not started" in result.stderr


@pytest.mark.integration
def test_write_static_requires_text():
    """The static backend needs --static-text."""
    result = _run("write", "Hello", "-b", "static")

    assert result.returncode == 1


@pytest.mark.integration
def test_config_lists_variables():
    """config should list every category."""
    result = _run("config")

    assert result.returncode == 0
    for name in ("GENERATION_TIMEOUT_MS", "RETRY_MAX_ATTEMPTS", "SUCCESS_GRACE_MS"):
        assert name in result.stdout


@pytest.mark.integration
def test_config_category_filter():
    """config retry should only list retry variables."""
    result = _run("config", "retry", RETRY_MAX_ATTEMPTS="7")

    assert result.returncode == 0
    assert "RETRY_MAX_ATTEMPTS" in result.stdout
    assert "(env)" in result.stdout
    assert "GENERATION_TIMEOUT_MS" not in result.stdout


@pytest.mark.integration
def test_config_unknown_category():
    """Unknown categories are rejected."""
    result = _run("config", "nonsense")

    assert result.returncode == 1
