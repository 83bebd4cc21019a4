"""CLI package for orgcontact_sync."""

from orgcontact_sync.cli.formatters import (
    show_folder_summary,
    show_run_summary,
    show_user_results,
)
from orgcontact_sync.cli.main import build_engine, cli, load_settings

__all__ = [
    "build_engine",
    "cli",
    "load_settings",
    "show_folder_summary",
    "show_run_summary",
    "show_user_results",
]
