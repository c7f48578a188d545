"""Tests for the Content Guard."""

import pytest

from src.errors import ContentValidationError

from .lib import GuardResult, check, preview, sanitize, validate

CONTROL_SAMPLES = ["\x00", "\x07", "\x08", "\x0b", "\x0c", "\x0e", "\x1f", "\x7f"]


class TestValidate:
    """Tests for validate()."""

    @pytest.mark.unit
    def test_plain_text_is_valid(self):
        result = validate("Hello world.\n\tIndented line.")
        assert result.valid
        assert result.violations == []
        assert bool(result) is True

    @pytest.mark.unit
    def test_exact_limit_is_valid(self):
        assert validate("a" * 50_000).valid

    @pytest.mark.unit
    def test_over_limit_is_rejected(self):
        result = validate("a" * 50_001)
        assert not result.valid
        assert result.violations == [
            "Content exceeds maximum length of 50,000 characters"
        ]

    @pytest.mark.unit
    def test_limit_override(self):
        assert not validate("abcdef", max_length=5).valid

    @pytest.mark.unit
    def test_limit_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "3")
        assert not validate("abcd").valid

    @pytest.mark.unit
    def test_control_characters_are_not_violations(self):
        """Control characters are stripped, never rejected."""
        assert validate("bad\x00char\x7f").valid

    @pytest.mark.unit
    def test_non_string_rejected(self):
        result = validate(None)  # type: ignore[arg-type]
        assert not result.valid
        assert "string" in result.violations[0]


class TestSanitize:
    """Tests for sanitize()."""

    @pytest.mark.unit
    @pytest.mark.parametrize("char", CONTROL_SAMPLES)
    def test_strips_control_characters(self, char):
        assert sanitize(f"a{char}b") == "ab"

    @pytest.mark.unit
    def test_preserves_tab_newline_and_carriage_return(self):
        text = "line one\n\tline two\r\n"
        assert sanitize(text) == text

    @pytest.mark.unit
    def test_preserves_unicode(self):
        text = "Café – naïve “quotes” 🚀"
        assert sanitize(text) == text

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        ["", "plain", "\x00\x00", "mi\x01xed\n\x7f\tcontent\x1b[0m", "\x0b\x0c\x0e"],
    )
    def test_idempotent(self, text):
        once = sanitize(text)
        assert sanitize(once) == once


class TestCheck:
    """Tests for check()."""

    @pytest.mark.unit
    def test_returns_sanitized_text(self):
        assert check("he\x00llo") == "hello"

    @pytest.mark.unit
    def test_raises_with_context(self):
        text = "x" * 150
        with pytest.raises(ContentValidationError) as exc_info:
            check(text, max_length=120)
        error = exc_info.value
        assert error.violations
        assert error.context["length"] == 150
        assert error.context["content"] == "x" * 100 + "..."
        assert error.message.startswith("Invalid content:")


class TestPreview:
    """Tests for preview()."""

    @pytest.mark.unit
    def test_short_text_unchanged(self):
        assert preview("short") == "short"

    @pytest.mark.unit
    def test_long_text_truncated(self):
        assert preview("y" * 101) == "y" * 100 + "..."


class TestGuardResult:
    """Tests for GuardResult."""

    @pytest.mark.unit
    def test_falsy_when_invalid(self):
        assert not GuardResult(valid=False, violations=["nope"])
