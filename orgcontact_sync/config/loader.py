"""
Configuration loader module for directory contact synchronization.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of key types and value ranges
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".orgcontact-sync"

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "ORGCONTACT_SYNC_CONFIG_DIR"

logger = logging.getLogger(__name__)

# Valid configuration keys and their expected types
VALID_KEYS: dict[str, type[Any] | tuple[type[Any], ...]] = {
    # Authentication
    "tenant_id": str,
    "client_id": str,
    "client_secret": str,
    "client_secret_env": str,
    "authority_url": str,
    # API
    "api_base_url": str,
    "batch_size": int,
    "max_retries": int,
    "request_timeout": (int, float),
    "operation_delay": (int, float),
    "user_cooldown": (int, float),
    "max_concurrent_users": int,
    "use_batch": bool,
    # Scope
    "source_group_id": str,
    "target_group_id": str,
    "include_external": bool,
    "licensed_only": bool,
    "exclude_addresses": list,
    # Reconciliation policy
    "update_existing": bool,
    "remove_missing": bool,
    "managed_category": str,
    "contact_folder": str,
    # Cleanup policy
    "cleanup_preserve_category": str,
    "cleanup_remove_category": str,
    "cleanup_match_names": bool,
    # CLI / logging
    "dry_run": bool,
    "verbose": bool,
    "log_dir": str,
    "log_retention_count": int,
}

POSITIVE_INT_KEYS = ("batch_size", "max_concurrent_users")
NON_NEGATIVE_INT_KEYS = ("max_retries", "log_retention_count")
NON_NEGATIVE_FLOAT_KEYS = ("operation_delay", "user_cooldown")

# Graph JSON batching accepts at most 20 requests
MAX_BATCH_SIZE = 20


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. ORGCONTACT_SYNC_CONFIG_DIR environment variable
        3. Default directory (~/.orgcontact-sync)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Configuration values, or an empty dict if the file doesn't exist

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration values, or an empty dict if the file doesn't exist

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            logger.debug(f"Configuration file is empty: {path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are logged and ignored.

        Raises:
            ConfigError: If a known key has the wrong type or an invalid value
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            expected_type = VALID_KEYS.get(key)
            if expected_type is None:
                logger.warning(f"Ignoring unknown configuration key '{key}'")
                continue
            # bool is an int subclass; reject it for numeric keys
            if isinstance(value, bool) and expected_type is not bool:
                raise ConfigError(f"Invalid type for '{key}': got bool")
            if not isinstance(value, expected_type):
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        for key in POSITIVE_INT_KEYS:
            if key in config and config[key] < 1:
                raise ConfigError(f"{key} must be >= 1, got {config[key]}")

        for key in NON_NEGATIVE_INT_KEYS + NON_NEGATIVE_FLOAT_KEYS:
            if key in config and config[key] < 0:
                raise ConfigError(f"{key} must be >= 0, got {config[key]}")

        if "request_timeout" in config and config["request_timeout"] <= 0:
            raise ConfigError(
                f"request_timeout must be > 0, got {config['request_timeout']}"
            )

        if config.get("batch_size", 1) > MAX_BATCH_SIZE:
            raise ConfigError(
                f"batch_size must be <= {MAX_BATCH_SIZE}, got {config['batch_size']}"
            )

        addresses = config.get("exclude_addresses", [])
        if not all(isinstance(a, str) for a in addresses):
            raise ConfigError("exclude_addresses must be a list of strings")

        if "managed_category" in config and not config["managed_category"].strip():
            raise ConfigError("managed_category cannot be empty")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
