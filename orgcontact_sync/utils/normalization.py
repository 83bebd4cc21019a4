"""
String normalization utilities for contact matching.

Provides the join keys used to line up directory entries with the
contacts already stored for a user.
"""

from __future__ import annotations


def normalize_email(value: str | None) -> str:
    """
    Normalize an email address for use as a matching key.

    Args:
        value: Raw address, possibly None or padded with whitespace

    Returns:
        Trimmed, lowercased address, or an empty string if there is none
    """
    if not value:
        return ""
    return value.strip().lower()


def normalize_name(value: str | None) -> str:
    """Normalize a display name for duplicate grouping (case only)."""
    if not value:
        return ""
    return value.lower()
