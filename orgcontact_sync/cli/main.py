"""
Command-line interface for orgcontact_sync.

Provides CLI commands for publishing the organization directory into every
user's contact list, cleaning up duplicate contacts, and removing contact
folders.

Usage:
    # Show help
    orgcontact-sync --help

    # Create a configuration file
    orgcontact-sync init-config

    # Run synchronization
    orgcontact-sync sync
    orgcontact-sync sync --dry-run
    orgcontact-sync sync --user alice@example.com --verbose

    # Cleanup
    orgcontact-sync cleanup --remove-category "Old Directory"
    orgcontact-sync delete-folder "Company Directory" --dry-run
"""

import logging
import sys
from pathlib import Path
from typing import Any

import click

from orgcontact_sync import __version__
from orgcontact_sync.api.graph_api import GraphAPIError, GraphClient, RunSession
from orgcontact_sync.auth.token_provider import (
    AuthenticationError,
    ClientCredentialsTokenProvider,
    TokenCache,
)
from orgcontact_sync.cli.formatters import show_folder_summary, show_run_summary
from orgcontact_sync.config.generator import save_config_file
from orgcontact_sync.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
    resolve_config_dir,
)
from orgcontact_sync.config.settings import SyncSettings
from orgcontact_sync.sync.engine import SyncEngine
from orgcontact_sync.utils.logging import cleanup_old_logs, setup_logging


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def load_settings(ctx: click.Context, **overrides: Any) -> SyncSettings:
    """
    Build run settings from the loaded configuration and CLI overrides.

    Exits with status 1 if the configuration file was invalid.
    """
    error = ctx.obj.get("config_error")
    if error:
        click.echo(
            click.style(f"Error: Configuration error: {error}", fg="red"), err=True
        )
        click.echo(f"Check {ctx.obj['config_file']}", err=True)
        sys.exit(1)

    settings = SyncSettings.from_dict(ctx.obj.get("config", {}))
    return settings.with_overrides(**overrides)


def build_engine(settings: SyncSettings) -> SyncEngine:
    """
    Wire the token cache, run session, client and engine for one run.

    Raises:
        ConfigError: If credentials are missing
        AuthenticationError: If the first token cannot be acquired
    """
    tenant_id, client_id, secret = settings.require_credentials()

    provider = ClientCredentialsTokenProvider(
        tenant_id,
        client_id,
        secret,
        authority_url=settings.authority_url,
        timeout=settings.request_timeout,
    )
    session = RunSession(
        tokens=TokenCache(provider), batch_supported=settings.use_batch
    )
    # Fail fast on bad credentials before any directory call
    session.tokens.get_token()

    client = GraphClient(
        session,
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )
    return SyncEngine(client, settings)


def _fail(logger: Any, label: str, error: Exception) -> None:
    """Report a fatal run error and exit with status 1."""
    if isinstance(error, (ConfigError, AuthenticationError)):
        logger.error(f"{label} failed: {error}")
    else:
        logger.exception(f"{label} failed: {error}")
    click.echo(click.style(f"\n{label} failed: {error}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="orgcontact-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="ORGCONTACT_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.orgcontact-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="ORGCONTACT_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Organization Contact Sync.

    Publishes the organization's user directory into every licensed user's
    mailbox contacts and keeps those contacts current.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = resolve_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    # A broken file must not stop init-config; run commands check it later
    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        ctx.obj["config_error"] = str(e)
        config = {}

    ctx.obj["config"] = config

    # CLI arg takes precedence over config file
    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()

    setup_logging(verbose=effective_verbose, log_dir=log_dir)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        orgcontact-sync init-config

        # Overwrite existing config file
        orgcontact-sync init-config --force
    """
    logger = logging.getLogger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Set tenant_id and client_id")
        click.echo("2. Export ORGCONTACT_SYNC_CLIENT_SECRET")
        click.echo("3. Preview with 'orgcontact-sync sync --dry-run'")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Preview changes without applying them."
)
@click.option(
    "--no-update", is_flag=True, help="Do not update contacts that already exist."
)
@click.option(
    "--no-remove",
    is_flag=True,
    help="Do not delete managed contacts that left the directory.",
)
@click.option(
    "--no-batch", is_flag=True, help="Send one request per operation (no batching)."
)
@click.option(
    "--user",
    "-u",
    "users",
    multiple=True,
    help="Only sync this user (principal name or mail). Repeatable.",
)
@click.option("--source-group", help="Group whose members become contacts.")
@click.option("--target-group", help="Group whose members receive the contacts.")
@click.pass_context
def sync_command(
    ctx: click.Context,
    dry_run: bool,
    no_update: bool,
    no_remove: bool,
    no_batch: bool,
    users: tuple[str, ...],
    source_group: str | None,
    target_group: str | None,
) -> None:
    """
    Synchronize directory users into every target user's contacts.

    Creates contacts for new directory users, updates contacts whose
    details changed, and removes managed contacts for users who left.
    Contacts without the managed category are never deleted.

    Examples:

        # Preview changes without applying
        orgcontact-sync sync --dry-run

        # Only two mailboxes, create-only
        orgcontact-sync sync -u alice@example.com -u bob@example.com --no-update
    """
    logger = logging.getLogger(__name__)
    verbose = ctx.obj["verbose"]

    # For boolean flags, True on the CLI wins; otherwise the file value stays
    settings = load_settings(
        ctx,
        dry_run=True if dry_run else None,
        update_existing=False if no_update else None,
        remove_missing=False if no_remove else None,
        use_batch=False if no_batch else None,
        source_group_id=source_group,
        target_group_id=target_group,
    )

    try:
        click.echo("Acquiring access token...")
        engine = build_engine(settings)

        if verbose:
            click.echo("\nSync configuration:")
            click.echo(f"  Source group: {settings.source_group_id or '(all users)'}")
            click.echo(f"  Target group: {settings.target_group_id or '(all users)'}")
            click.echo(f"  Update existing: {settings.update_existing}")
            click.echo(f"  Remove missing: {settings.remove_missing}")
            click.echo(f"  Batching: {settings.use_batch}")
            click.echo(f"  Dry run: {settings.dry_run}")

        mode = "Analyzing" if settings.dry_run else "Synchronizing"
        click.echo(f"\n{mode} contacts...")

        summary = engine.run_sync(only_users=list(users) or None)
    except (ConfigError, AuthenticationError, GraphAPIError) as e:
        _fail(logger, "Sync", e)
        return

    show_run_summary(summary, verbose=verbose)


# =============================================================================
# Cleanup Command
# =============================================================================


@cli.command("cleanup")
@click.option(
    "--preserve-category",
    help="Category of the contact kept when duplicates are removed.",
)
@click.option(
    "--remove-category",
    help="Contacts with this category are always removed.",
)
@click.option(
    "--no-name-match",
    is_flag=True,
    help="Only treat contacts sharing an email address as duplicates.",
)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Preview deletions without applying them."
)
@click.option(
    "--user", "-u", "users", multiple=True, help="Only clean this user. Repeatable."
)
@click.pass_context
def cleanup_command(
    ctx: click.Context,
    preserve_category: str | None,
    remove_category: str | None,
    no_name_match: bool,
    dry_run: bool,
    users: tuple[str, ...],
) -> None:
    """
    Remove duplicate and obsolete contacts.

    Within each group of duplicates (same display name or same email
    address) one contact survives, preferring the preserve category and
    then the first listed. Contacts in the remove category are always deleted.

    Examples:

        # Preview removal of a retired directory import
        orgcontact-sync cleanup --remove-category "Old Directory" --dry-run
    """
    logger = logging.getLogger(__name__)

    settings = load_settings(
        ctx,
        dry_run=True if dry_run else None,
        cleanup_preserve_category=preserve_category,
        cleanup_remove_category=remove_category,
        cleanup_match_names=False if no_name_match else None,
    )

    try:
        click.echo("Acquiring access token...")
        engine = build_engine(settings)

        mode = "Analyzing" if settings.dry_run else "Cleaning up"
        click.echo(f"\n{mode} contacts...")

        summary = engine.run_cleanup(only_users=list(users) or None)
    except (ConfigError, AuthenticationError, GraphAPIError) as e:
        _fail(logger, "Cleanup", e)
        return

    show_run_summary(summary, verbose=ctx.obj["verbose"])


# =============================================================================
# Delete-Folder Command
# =============================================================================


@cli.command("delete-folder")
@click.argument("name")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Report what would be deleted only."
)
@click.option(
    "--user", "-u", "users", multiple=True, help="Only this user. Repeatable."
)
@click.pass_context
def delete_folder_command(
    ctx: click.Context, name: str, dry_run: bool, users: tuple[str, ...]
) -> None:
    """
    Delete the contact folder NAME, with its contacts, for every user.

    Examples:

        orgcontact-sync delete-folder "Company Directory" --dry-run
    """
    logger = logging.getLogger(__name__)

    settings = load_settings(ctx, dry_run=True if dry_run else None)

    try:
        click.echo("Acquiring access token...")
        engine = build_engine(settings)

        click.echo(f"\nLooking for contact folder '{name}'...")
        summary = engine.run_folder_deletion(name, only_users=list(users) or None)
    except (ConfigError, AuthenticationError, GraphAPIError, ValueError) as e:
        _fail(logger, "Folder deletion", e)
        return

    show_folder_summary(summary, verbose=ctx.obj["verbose"])
