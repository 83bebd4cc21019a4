"""
orgcontact_sync.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from orgcontact_sync.config.loader import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
    resolve_config_dir,
)
from orgcontact_sync.config.settings import SyncSettings

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_FILE",
    "ConfigError",
    "ConfigLoader",
    "SyncSettings",
    "resolve_config_dir",
]
