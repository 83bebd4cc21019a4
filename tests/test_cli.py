"""
Tests for the CLI module.

Tests the command-line interface using Click's testing utilities. The engine
is patched out; these tests cover option handling, wiring and exit codes.
"""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from orgcontact_sync import __version__
from orgcontact_sync.api.graph_api import RemoteAPIError, ThrottledExhaustedError
from orgcontact_sync.auth.token_provider import TokenAcquisitionError
from orgcontact_sync.cli import build_engine, cli
from orgcontact_sync.config.settings import SyncSettings
from orgcontact_sync.sync.engine import (
    FolderDeletionResult,
    FolderDeletionSummary,
    ReconciliationResult,
    RunSummary,
)

CREDENTIALS = "tenant_id: t1\nclient_id: c1\nclient_secret: s1\n"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    """Config directory holding a file with credentials."""
    (tmp_path / "config.yaml").write_text(CREDENTIALS)
    return tmp_path


@pytest.fixture
def engine():
    """Engine mock returning a small successful run."""
    engine = MagicMock()
    engine.run_sync.return_value = RunSummary(
        results=[ReconciliationResult(user="alice@x.com", created=2, unchanged=3)]
    )
    engine.run_cleanup.return_value = RunSummary(
        results=[ReconciliationResult(user="alice@x.com", deleted=1)],
        title="Cleanup",
    )
    engine.run_folder_deletion.return_value = FolderDeletionSummary(
        folder_name="Old",
        results=[
            FolderDeletionResult(
                user="alice@x.com", folder_found=True, contact_count=4, deleted=True
            )
        ],
    )
    return engine


def invoke(runner, config_dir, *args):
    """Run the CLI against a config directory with file logging disabled."""
    return runner.invoke(
        cli,
        ["--config-dir", str(config_dir), *args],
        env={"ORGCONTACT_SYNC_LOG_FILE": "none"},
    )


class TestCliGroup:
    """Tests for the main CLI group."""

    def test_cli_help(self, runner):
        """Test that CLI shows help with every command."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Organization Contact Sync" in result.output
        for command in ("sync", "cleanup", "delete-folder", "init-config"):
            assert command in result.output

    def test_cli_version(self, runner):
        """Test that CLI shows version."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestInitConfigCommand:
    """Tests for init-config."""

    def test_creates_file(self, runner, tmp_path):
        """Test that the template is written into the config directory."""
        result = invoke(runner, tmp_path, "init-config")

        assert result.exit_code == 0
        assert "created successfully" in result.output
        assert (tmp_path / "config.yaml").exists()

    def test_refuses_to_overwrite(self, runner, config_dir):
        """Test that an existing file is kept without --force."""
        result = invoke(runner, config_dir, "init-config")

        assert result.exit_code == 1
        assert (config_dir / "config.yaml").read_text() == CREDENTIALS

    def test_force_overwrites(self, runner, config_dir):
        """Test that --force replaces the file."""
        result = invoke(runner, config_dir, "init-config", "--force")

        assert result.exit_code == 0
        assert (config_dir / "config.yaml").read_text() != CREDENTIALS

    def test_works_with_broken_config(self, runner, tmp_path):
        """Test that a broken file does not block init-config --force."""
        (tmp_path / "config.yaml").write_text("batch_size: many\n")

        result = invoke(runner, tmp_path, "init-config", "--force")

        assert result.exit_code == 0


class TestSyncCommand:
    """Tests for the sync command."""

    def test_sync_success(self, runner, config_dir, engine):
        """Test a successful run prints the summary and exits 0."""
        with patch("orgcontact_sync.cli.main.build_engine", return_value=engine):
            result = invoke(runner, config_dir, "sync")

        assert result.exit_code == 0, result.output
        assert "Sync Summary" in result.output
        assert "Created: 2" in result.output
        engine.run_sync.assert_called_once_with(only_users=None)

    def test_flags_override_config(self, runner, config_dir, engine):
        """Test that CLI flags land in the run settings."""
        (config_dir / "config.yaml").write_text(
            CREDENTIALS + "source_group_id: g-file\nremove_missing: true\n"
        )
        with patch(
            "orgcontact_sync.cli.main.build_engine", return_value=engine
        ) as mock_build:
            result = invoke(
                runner,
                config_dir,
                "sync",
                "--dry-run",
                "--no-update",
                "--no-remove",
                "--no-batch",
                "--target-group",
                "g-cli",
            )

        assert result.exit_code == 0, result.output
        settings = mock_build.call_args.args[0]
        assert settings.dry_run is True
        assert settings.update_existing is False
        assert settings.remove_missing is False
        assert settings.use_batch is False
        assert settings.source_group_id == "g-file"
        assert settings.target_group_id == "g-cli"

    def test_unset_flags_keep_config(self, runner, config_dir, engine):
        """Test that file values stand when flags are not given."""
        (config_dir / "config.yaml").write_text(
            CREDENTIALS + "update_existing: false\n"
        )
        with patch(
            "orgcontact_sync.cli.main.build_engine", return_value=engine
        ) as mock_build:
            invoke(runner, config_dir, "sync")

        settings = mock_build.call_args.args[0]
        assert settings.update_existing is False
        assert settings.dry_run is False

    def test_user_option_repeatable(self, runner, config_dir, engine):
        """Test that --user narrows the run to the given users."""
        with patch("orgcontact_sync.cli.main.build_engine", return_value=engine):
            invoke(runner, config_dir, "sync", "-u", "a@x.com", "--user", "b@x.com")

        engine.run_sync.assert_called_once_with(only_users=["a@x.com", "b@x.com"])

    def test_missing_credentials(self, runner, tmp_path):
        """Test that a run without credentials exits 1."""
        result = runner.invoke(
            cli,
            ["--config-dir", str(tmp_path), "sync"],
            env={
                "ORGCONTACT_SYNC_LOG_FILE": "none",
                "ORGCONTACT_SYNC_CLIENT_SECRET": "",
            },
        )

        assert result.exit_code == 1
        assert "Missing credentials" in result.output

    def test_invalid_config(self, runner, tmp_path):
        """Test that an invalid configuration file stops the run."""
        (tmp_path / "config.yaml").write_text("batch_size: 50\n")

        result = invoke(runner, tmp_path, "sync")

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    @pytest.mark.parametrize(
        "error",
        [
            TokenAcquisitionError("invalid_client"),
            RemoteAPIError(403, "Authorization_RequestDenied"),
            ThrottledExhaustedError("still throttled", status=429),
        ],
    )
    def test_fatal_errors_exit_1(self, runner, config_dir, engine, error):
        """Test that setup failures exit with status 1."""
        engine.run_sync.side_effect = error
        with patch("orgcontact_sync.cli.main.build_engine", return_value=engine):
            result = invoke(runner, config_dir, "sync")

        assert result.exit_code == 1
        assert "Sync failed" in result.output

    def test_user_errors_do_not_fail_run(self, runner, config_dir, engine):
        """Test that a completed run with failed users still exits 0."""
        engine.run_sync.return_value = RunSummary(
            results=[ReconciliationResult(user="bob@x.com", error="HTTP 403: denied")]
        )
        with patch("orgcontact_sync.cli.main.build_engine", return_value=engine):
            result = invoke(runner, config_dir, "sync")

        assert result.exit_code == 0
        assert "bob@x.com: FAILED" in result.output
        assert "Errors: 1" in result.output


class TestCleanupCommand:
    """Tests for the cleanup command."""

    def test_cleanup_options(self, runner, config_dir, engine):
        """Test that cleanup options reach the settings."""
        with patch(
            "orgcontact_sync.cli.main.build_engine", return_value=engine
        ) as mock_build:
            result = invoke(
                runner,
                config_dir,
                "cleanup",
                "--remove-category",
                "Old Directory",
                "--preserve-category",
                "Keep",
                "--no-name-match",
                "--dry-run",
            )

        assert result.exit_code == 0, result.output
        settings = mock_build.call_args.args[0]
        assert settings.cleanup_remove_category == "Old Directory"
        assert settings.cleanup_preserve_category == "Keep"
        assert settings.cleanup_match_names is False
        assert settings.dry_run is True
        engine.run_cleanup.assert_called_once_with(only_users=None)
        assert "Deleted: 1" in result.output
        assert "Cleanup Summary" in result.output

    def test_cleanup_help_describes_survivor(self, runner):
        """Test that the help text matches the survivor rule."""
        result = runner.invoke(cli, ["cleanup", "--help"])

        text = " ".join(result.output.split())
        assert result.exit_code == 0
        assert "then the first listed" in text
        assert "oldest" not in text


class TestDeleteFolderCommand:
    """Tests for the delete-folder command."""

    def test_delete_folder(self, runner, config_dir, engine):
        """Test that the folder name and users are passed to the engine."""
        with patch("orgcontact_sync.cli.main.build_engine", return_value=engine):
            result = invoke(runner, config_dir, "delete-folder", "Old", "-u", "a@x.com")

        assert result.exit_code == 0, result.output
        engine.run_folder_deletion.assert_called_once_with(
            "Old", only_users=["a@x.com"]
        )
        assert "Folders deleted: 1" in result.output

    def test_name_required(self, runner, config_dir):
        """Test that the folder name argument is mandatory."""
        result = invoke(runner, config_dir, "delete-folder")
        assert result.exit_code == 2


class TestBuildEngine:
    """Tests for wiring the run components."""

    @patch("orgcontact_sync.auth.token_provider.requests.post")
    def test_build_engine(self, mock_post):
        """Test that the engine shares one session configured from settings."""
        response = MagicMock(status_code=200)
        response.json.return_value = {"access_token": "tok", "expires_in": 3600}
        mock_post.return_value = response
        settings = SyncSettings(
            tenant_id="t1",
            client_id="c1",
            client_secret="s1",
            use_batch=False,
            max_retries=3,
            batch_size=10,
        )

        engine = build_engine(settings)

        assert mock_post.call_count == 1
        assert engine.client.session.batch_supported is False
        assert engine.client.max_retries == 3
        assert engine.executor.client is engine.client
        assert engine.executor.batch_size == 10
        assert engine.loader.client is engine.client

    def test_build_engine_without_credentials(self):
        """Test that missing credentials fail before any request."""
        from orgcontact_sync.config.loader import ConfigError

        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigError):
                build_engine(SyncSettings(tenant_id="t1"))
