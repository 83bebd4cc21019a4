"""
orgcontact_sync.directory - Directory and mailbox snapshot loading
"""

from orgcontact_sync.directory.loader import (
    DirectoryFilter,
    DirectoryLoader,
    apply_filter,
)

__all__ = ["DirectoryFilter", "DirectoryLoader", "apply_filter"]
