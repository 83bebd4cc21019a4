"""
Tests for the normalization utilities.
"""

import pytest

from orgcontact_sync.utils import normalize_email, normalize_name


class TestNormalizeEmail:
    """Tests for normalize_email function."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("alice@example.com", "alice@example.com"),
            ("Alice@Example.COM", "alice@example.com"),
            ("  bob@example.com\t", "bob@example.com"),
        ],
    )
    def test_normalizes_case_and_whitespace(self, raw, expected):
        """Test that case and surrounding whitespace are ignored."""
        assert normalize_email(raw) == expected

    def test_none_and_empty(self):
        """Test that missing values become an empty key."""
        assert normalize_email(None) == ""
        assert normalize_email("") == ""
        assert normalize_email("   ") == ""


class TestNormalizeName:
    """Tests for normalize_name function."""

    def test_normalizes_name(self):
        """Test that display names compare case-insensitively."""
        assert normalize_name("Alice Smith") == normalize_name("alice smith")

    def test_whitespace_kept(self):
        """Test that surrounding whitespace is part of the name key."""
        assert normalize_name("Bob ") != normalize_name("bob")

    def test_none(self):
        """Test that a missing name becomes an empty key."""
        assert normalize_name(None) == ""
