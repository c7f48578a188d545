"""Tests for configuration management."""

import logging

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_environment,
    get_environment_info,
    get_log_level,
    get_token_delay_range,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("GENERATION_TIMEOUT_MS", raising=False)
        result = get_environment(EnvVar.GENERATION_TIMEOUT_MS)
        assert result == 10_000

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("ERROR_GRACE_MS", "9999")
        result = get_environment(EnvVar.ERROR_GRACE_MS, override=5)
        assert result == 5

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("SUCCESS_GRACE_MS", "300")
        result = get_environment(EnvVar.SUCCESS_GRACE_MS)
        assert result == 300
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Float type conversion from string."""
        monkeypatch.setenv("FAILURE_RATE", "0.25")
        result = get_environment(EnvVar.FAILURE_RATE)
        assert result == 0.25
        assert isinstance(result, float)

    @pytest.mark.unit
    def test_invalid_float_returns_default(self, monkeypatch):
        """Invalid float value returns default."""
        monkeypatch.setenv("FAILURE_RATE", "often")
        assert get_environment(EnvVar.FAILURE_RATE) == 0.0

    @pytest.mark.unit
    def test_bool_type_conversion_true(self, monkeypatch):
        """Boolean type conversion for true values."""
        for value in ("true", "1", "yes", "TRUE", "Yes"):
            monkeypatch.setenv("STREAMING_ENABLED", value)
            assert get_environment(EnvVar.STREAMING_ENABLED) is True

    @pytest.mark.unit
    def test_bool_type_conversion_false(self, monkeypatch):
        """Boolean type conversion for false values."""
        for value in ("false", "0", "no", "FALSE", "No"):
            monkeypatch.setenv("STREAMING_ENABLED", value)
            assert get_environment(EnvVar.STREAMING_ENABLED) is False

    @pytest.mark.unit
    def test_none_default_for_token_timeout(self, monkeypatch):
        """Per-token deadline is unset by default."""
        monkeypatch.delenv("TOKEN_TIMEOUT_MS", raising=False)
        assert get_environment(EnvVar.TOKEN_TIMEOUT_MS) is None

    @pytest.mark.unit
    def test_invalid_int_returns_default(self, monkeypatch):
        """Invalid integer value returns default."""
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "lots")
        assert get_environment(EnvVar.MAX_CONTENT_LENGTH) == 50_000


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.ERROR_GRACE_MS)
        assert isinstance(info, EnvConfig)
        assert info.name == "ERROR_GRACE_MS"
        assert info.default == 10_000
        assert info.var_type is int
        assert info.category == "machine"

    @pytest.mark.unit
    def test_every_variable_is_described(self):
        """Every variable carries a description."""
        for var in EnvVar:
            assert get_environment_info(var).description


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_returns_all_variables(self):
        """Returns all EnvVar members when no category."""
        result = list_environment_variables()
        assert len(result) == len(EnvVar)

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Filters by category correctly."""
        retry_vars = list_environment_variables("retry")
        assert EnvVar.RETRY_MAX_ATTEMPTS in retry_vars
        assert EnvVar.RETRY_BASE_DELAY_MS in retry_vars
        assert EnvVar.LOG_LEVEL not in retry_vars

    @pytest.mark.unit
    def test_unknown_category_is_empty(self):
        """Unknown category yields no variables."""
        assert list_environment_variables("nope") == []


# =============================================================================
# Tests for convenience functions
# =============================================================================


class TestGetLogLevel:
    """Tests for log level resolution."""

    @pytest.mark.unit
    def test_default_is_info(self, monkeypatch):
        """INFO when LOG_LEVEL is not set."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level() == logging.INFO

    @pytest.mark.unit
    def test_env_name_resolved(self, monkeypatch):
        """Level names are resolved case-insensitively."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == logging.DEBUG

    @pytest.mark.unit
    def test_unknown_name_falls_back(self, monkeypatch):
        """Unknown names fall back to INFO."""
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert get_log_level() == logging.INFO

    @pytest.mark.unit
    def test_int_override(self):
        """Integer overrides are returned unchanged."""
        assert get_log_level(logging.WARNING) == logging.WARNING


class TestGetTokenDelayRange:
    """Tests for synthetic delay bounds."""

    @pytest.mark.unit
    def test_defaults(self, monkeypatch):
        """Defaults are 50-150 ms."""
        monkeypatch.delenv("TOKEN_DELAY_MIN_MS", raising=False)
        monkeypatch.delenv("TOKEN_DELAY_MAX_MS", raising=False)
        assert get_token_delay_range() == (50, 150)

    @pytest.mark.unit
    def test_swapped_bounds(self, monkeypatch):
        """Inverted bounds are normalised."""
        monkeypatch.setenv("TOKEN_DELAY_MIN_MS", "90")
        monkeypatch.setenv("TOKEN_DELAY_MAX_MS", "10")
        assert get_token_delay_range() == (10, 90)
