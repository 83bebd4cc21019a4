"""
Resolved run settings.

Turns the validated configuration dictionary into a typed SyncSettings
object and derives the policy and filter objects the engine consumes.

Configuration file format (config.yaml):

    tenant_id: 00000000-0000-0000-0000-000000000000
    client_id: 11111111-1111-1111-1111-111111111111
    client_secret_env: ORGCONTACT_SYNC_CLIENT_SECRET
    source_group_id: 22222222-2222-2222-2222-222222222222
    update_existing: true
    remove_missing: true
    exclude_addresses:
      - noreply@example.com
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from orgcontact_sync.api.batch import DEFAULT_BATCH_SIZE, DEFAULT_OPERATION_DELAY
from orgcontact_sync.api.graph_api import (
    DEFAULT_API_BASE_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
)
from orgcontact_sync.auth.token_provider import DEFAULT_AUTHORITY_URL
from orgcontact_sync.config.loader import ConfigError
from orgcontact_sync.directory.loader import DirectoryFilter
from orgcontact_sync.sync.contact import DEFAULT_MANAGED_CATEGORY
from orgcontact_sync.sync.reconciler import ReconcilePolicy
from orgcontact_sync.utils import normalize_email

# Environment variable read for the client secret by default
DEFAULT_CLIENT_SECRET_ENV = "ORGCONTACT_SYNC_CLIENT_SECRET"

# Pause between users after throttling was observed
DEFAULT_USER_COOLDOWN = 5.0  # seconds

DEFAULT_MAX_CONCURRENT_USERS = 1


@dataclass
class SyncSettings:
    """
    Every setting a run needs, with defaults.

    Attributes mirror the configuration file keys; see
    orgcontact_sync.config.generator for their documentation.
    """

    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    client_secret_env: str = DEFAULT_CLIENT_SECRET_ENV
    authority_url: str = DEFAULT_AUTHORITY_URL

    api_base_url: str = DEFAULT_API_BASE_URL
    batch_size: int = DEFAULT_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    request_timeout: float = DEFAULT_TIMEOUT
    operation_delay: float = DEFAULT_OPERATION_DELAY
    user_cooldown: float = DEFAULT_USER_COOLDOWN
    max_concurrent_users: int = DEFAULT_MAX_CONCURRENT_USERS
    use_batch: bool = True

    source_group_id: str | None = None
    target_group_id: str | None = None
    include_external: bool = True
    licensed_only: bool = True
    exclude_addresses: list[str] = field(default_factory=list)

    update_existing: bool = True
    remove_missing: bool = True
    managed_category: str = DEFAULT_MANAGED_CATEGORY
    contact_folder: str | None = None

    cleanup_preserve_category: str | None = DEFAULT_MANAGED_CATEGORY
    cleanup_remove_category: str | None = None
    cleanup_match_names: bool = True

    dry_run: bool = False
    verbose: bool = False
    log_dir: Path | None = None
    log_retention_count: int = 10

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> SyncSettings:
        """
        Build settings from a validated configuration dictionary.

        Unknown keys are ignored; missing keys keep their defaults.
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in config.items() if key in known}

        if values.get("log_dir"):
            values["log_dir"] = Path(values["log_dir"]).expanduser()
        if "exclude_addresses" in values:
            values["exclude_addresses"] = list(values["exclude_addresses"])

        return cls(**values)

    def with_overrides(self, **overrides: Any) -> SyncSettings:
        """Return a copy with non-None overrides applied (CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def resolve_client_secret(self) -> str | None:
        """The client secret from the file, else from the environment."""
        if self.client_secret:
            return self.client_secret
        return os.environ.get(self.client_secret_env) or None

    def require_credentials(self) -> tuple[str, str, str]:
        """
        Return (tenant_id, client_id, client_secret).

        Raises:
            ConfigError: If any of them is missing
        """
        tenant_id = self.tenant_id or ""
        client_id = self.client_id or ""
        secret = self.resolve_client_secret() or ""

        missing = []
        if not tenant_id:
            missing.append("tenant_id")
        if not client_id:
            missing.append("client_id")
        if not secret:
            missing.append(f"client_secret (or ${self.client_secret_env})")
        if missing:
            raise ConfigError(f"Missing credentials: {', '.join(missing)}")

        return tenant_id, client_id, secret

    def reconcile_policy(self) -> ReconcilePolicy:
        return ReconcilePolicy(
            update_existing=self.update_existing,
            remove_missing=self.remove_missing,
            managed_category=self.managed_category,
        )

    def directory_filter(self) -> DirectoryFilter:
        excluded = {normalize_email(a) for a in self.exclude_addresses} - {""}
        return DirectoryFilter(
            enabled_only=True,
            licensed_only=self.licensed_only,
            include_external=self.include_external,
            exclude_addresses=frozenset(excluded),
        )
