"""
Entry point for running orgcontact_sync as a module.

Usage:
    python -m orgcontact_sync --help
    python -m orgcontact_sync sync --dry-run
    python -m orgcontact_sync cleanup --remove-category Legacy
"""

from orgcontact_sync.cli import cli

if __name__ == "__main__":
    cli()
