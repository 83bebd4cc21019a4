"""CLI output formatting functions.

This module contains functions for displaying run summaries and per-user
results on the command line.
"""

from typing import TYPE_CHECKING, Union

import click

if TYPE_CHECKING:
    from orgcontact_sync.sync.engine import FolderDeletionSummary, RunSummary

# Per-user lines shown before truncating
MAX_USER_LINES = 25


def show_user_results(
    summary: Union["RunSummary", "FolderDeletionSummary"],
    show_all: bool = False,
) -> None:
    """
    Display one line per processed user.

    Failed users are always listed; other users are listed when show_all
    is set (verbose mode).

    Args:
        summary: Run summary whose results to display
        show_all: List successful users too
    """
    failed = [r for r in summary.results if r.error]
    shown = summary.results if show_all else failed
    if not shown:
        return

    click.echo("\n=== Users ===")
    for result in shown[:MAX_USER_LINES]:
        color = "red" if result.error else None
        click.echo(click.style(f"  {result.describe()}", fg=color))
    if len(shown) > MAX_USER_LINES:
        click.echo(f"  ... and {len(shown) - MAX_USER_LINES} more")


def show_run_summary(summary: "RunSummary", verbose: bool = False) -> None:
    """
    Display the tally of a sync or cleanup run.

    Args:
        summary: The RunSummary returned by the engine
        verbose: Also list every processed user
    """
    click.echo("\n" + "=" * 50)
    click.echo(summary.summary())
    click.echo("=" * 50)

    show_user_results(summary, show_all=verbose)

    if summary.dry_run:
        click.echo(
            click.style("\nDry run complete. No changes were made.", fg="yellow")
        )
        click.echo("Run without --dry-run to apply these changes.")
    elif summary.errors:
        click.echo(
            click.style(
                f"\nCompleted with {summary.errors} errors. See the log for details.",
                fg="yellow",
            )
        )
    else:
        click.echo(click.style("\nCompleted successfully!", fg="green"))


def show_folder_summary(
    summary: "FolderDeletionSummary", verbose: bool = False
) -> None:
    """Display the tally of a folder deletion run."""
    click.echo("\n" + "=" * 50)
    click.echo(summary.summary())
    click.echo("=" * 50)

    show_user_results(summary, show_all=verbose)

    if summary.dry_run:
        click.echo(
            click.style("\nDry run complete. No folders were deleted.", fg="yellow")
        )
    elif summary.folders_found == 0:
        click.echo(f"\nNo user has a folder named '{summary.folder_name}'.")
    elif summary.errors:
        click.echo(
            click.style(f"\nCompleted with {summary.errors} errors.", fg="yellow")
        )
    else:
        click.echo(click.style("\nFolders deleted successfully!", fg="green"))
