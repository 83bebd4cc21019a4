"""
orgcontact_sync.utils - Utility module

Common utilities including logging configuration.
"""

from orgcontact_sync.utils.normalization import normalize_email, normalize_name

__all__ = ["normalize_email", "normalize_name"]
