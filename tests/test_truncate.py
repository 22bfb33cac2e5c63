"""Tests for error field truncation."""

from log_enricher.truncate import ELLIPSIS, MAX_FIELD_LENGTH, truncate


def test_short_text_unchanged():
    assert truncate("boom") == "boom"


def test_text_at_limit_unchanged():
    text = "x" * MAX_FIELD_LENGTH
    assert truncate(text) == text


def test_long_text_bounded():
    result = truncate("y" * (MAX_FIELD_LENGTH * 3))
    assert len(result) == MAX_FIELD_LENGTH
    assert result.endswith(ELLIPSIS)


def test_custom_limit():
    assert truncate("abcdefghij", limit=6) == "abc..."


def test_tiny_limit_has_no_ellipsis():
    assert truncate("abcdef", limit=2) == "ab"


def test_non_string_passthrough():
    assert truncate(None) is None
    assert truncate(42) == 42
