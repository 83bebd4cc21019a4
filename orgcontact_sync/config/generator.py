"""
Configuration file generator for directory contact synchronization.

Writes a template configuration file documenting every available option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate the default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Organization Contact Sync Configuration
# =======================================
#
# CLI arguments always override these values.
# Save as ~/.orgcontact-sync/config.yaml (or pass --config-file).

# Authentication (app registration with Contacts.ReadWrite and
# User.Read.All / GroupMember.Read.All application permissions)
# -------------------------------------------------------------

# tenant_id: 00000000-0000-0000-0000-000000000000
# client_id: 11111111-1111-1111-1111-111111111111

# Prefer reading the secret from the environment over storing it here
# Default: ORGCONTACT_SYNC_CLIENT_SECRET
# client_secret_env: ORGCONTACT_SYNC_CLIENT_SECRET
# client_secret: not-recommended


# Scope
# -----

# Group whose members become contacts. Default: all users in the directory
# source_group_id: 22222222-2222-2222-2222-222222222222

# Group whose members receive the contacts. Default: all users
# target_group_id: 33333333-3333-3333-3333-333333333333

# Keep cloud-only accounts in the contact set. When false, only accounts
# synchronized from on-premises Active Directory are published.
# Default: true
# include_external: true

# Only publish and target licensed accounts
# Default: true
# licensed_only: true

# Addresses that are never published as contacts
# exclude_addresses:
#   - noreply@example.com
#   - scanner@example.com


# Reconciliation
# --------------

# Update contacts whose directory details changed
# Default: true
# update_existing: true

# Delete managed contacts that left the directory
# Default: true
# remove_missing: true

# Category tag marking contacts owned by this tool. Only contacts carrying
# it are ever deleted by sync.
# Default: Company Contacts
# managed_category: Company Contacts

# Contact folder to synchronize into (created when missing).
# Default: the user's default Contacts folder
# contact_folder: Company Directory


# Cleanup command
# ---------------

# Preferred survivor when duplicates are removed
# Default: Company Contacts
# cleanup_preserve_category: Company Contacts

# Contacts with this category are always deleted by cleanup
# cleanup_remove_category: Old Directory

# Also treat contacts sharing a display name as duplicates
# Default: true
# cleanup_match_names: true


# API behaviour
# -------------

# Group operations into JSON batch requests (falls back automatically)
# Default: true
# use_batch: true

# Operations per batch request (1-20)
# Default: 20
# batch_size: 20

# Retries for throttled requests (backoff 2s, 4s, 8s ... capped at 60s)
# Default: 5
# max_retries: 5

# Seconds to wait for a single request
# Default: 30
# request_timeout: 30

# Pause between operations when not batching, in seconds
# Default: 0.2
# operation_delay: 0.2

# Pause before the next user after throttling, in seconds
# Default: 5
# user_cooldown: 5

# Advisory only; users are processed one at a time
# Default: 1
# max_concurrent_users: 1


# Logging and CLI defaults
# ------------------------

# dry_run: false
# verbose: false
# log_dir: ~/.orgcontact-sync/logs
# log_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save the default configuration file to the given path.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite an existing file

    Returns:
        (True, None) on success, (False, error_message) on failure
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")

        # May hold a client secret
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
