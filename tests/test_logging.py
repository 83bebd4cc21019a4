"""
Tests for the logging configuration module.
"""

import logging
import os
from unittest.mock import patch

import pytest

from orgcontact_sync.utils.logging import (
    CONSOLE_FORMAT,
    DATE_FORMAT,
    DEFAULT_LOG_DIR,
    LOG_FILE_PREFIX,
    LOGGER_NAME,
    VERBOSE_FORMAT,
    ColoredFormatter,
    cleanup_old_logs,
    get_log_file_path,
    get_log_level_from_env,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Leave the package logger without handlers after each test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    @patch.dict(os.environ, {"ORGCONTACT_SYNC_DEBUG": "true"}, clear=True)
    def test_debug_flag(self):
        """Test debug mode enabled from the environment."""
        assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_LEVEL": "warning"}, clear=True)
    def test_named_level(self):
        """Test a level name, case-insensitively."""
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_LEVEL": "WARN"}, clear=True)
    def test_warn_alias(self):
        """Test WARN as an alias for WARNING."""
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_LEVEL": "LOUD"}, clear=True)
    def test_invalid_level_defaults_to_info(self):
        """Test that unknown names fall back to INFO."""
        assert get_log_level_from_env() == logging.INFO

    @patch.dict(
        os.environ,
        {"ORGCONTACT_SYNC_DEBUG": "1", "ORGCONTACT_SYNC_LOG_LEVEL": "ERROR"},
        clear=True,
    )
    def test_debug_wins_over_level(self):
        """Test that the debug flag takes precedence."""
        assert get_log_level_from_env() == logging.DEBUG


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    @patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_FILE": "/tmp/run.log"})
    def test_custom_log_file_from_env(self):
        """Test an explicit log file from the environment."""
        assert str(get_log_file_path()) == "/tmp/run.log"

    @pytest.mark.parametrize("value", ["none", "disabled", ""])
    def test_log_file_disabled(self, value):
        """Test that file logging can be disabled."""
        with patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_FILE": value}):
            assert get_log_file_path() is None

    def test_daily_file_in_log_dir(self, tmp_path):
        """Test the dated file name inside the given directory."""
        with patch.dict(os.environ, {}, clear=True):
            path = get_log_file_path(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith(LOG_FILE_PREFIX)
        assert path.suffix == ".log"

    def test_default_log_dir(self):
        """Test the fallback directory."""
        with patch.dict(os.environ, {}, clear=True):
            assert get_log_file_path().parent == DEFAULT_LOG_DIR


class TestColoredFormatter:
    """Tests for ColoredFormatter class."""

    def test_formatter_with_colors_disabled(self):
        """Test formatter with colors explicitly disabled."""
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        assert formatter.use_colors is False

    @patch("sys.stderr")
    def test_non_tty_disables_colors(self, mock_stderr):
        """Test formatter detects non-TTY and disables colors."""
        mock_stderr.isatty.return_value = False
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"NO_COLOR": "1"})
    @patch("sys.stderr")
    def test_respects_no_color_env(self, mock_stderr):
        """Test formatter respects NO_COLOR environment variable."""
        mock_stderr.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"TERM": "xterm-256color", "NO_COLOR": ""})
    @patch("sys.stderr")
    def test_colors_on_terminal(self, mock_stderr):
        """Test that level names are colored on a capable terminal."""
        mock_stderr.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        record = logging.LogRecord("t", logging.ERROR, "t.py", 1, "boom", (), None)

        result = formatter.format(record)

        assert "\033[31m" in result
        assert record.levelname == "ERROR"

    def test_format_record_without_colors(self):
        """Test formatting a record without colors."""
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        record = logging.LogRecord(
            "t", logging.INFO, "t.py", 1, "Test message", (), None
        )

        result = formatter.format(record)

        assert result == "INFO: Test message"


class TestSetupLogging:
    """Tests for setup_logging function."""

    @pytest.fixture
    def no_log_file(self):
        with patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_FILE": "none"}):
            yield

    def test_returns_package_logger(self, no_log_file):
        """Test setup_logging returns the package logger."""
        logger = setup_logging()
        assert logger.name == LOGGER_NAME
        assert logger.propagate is False

    def test_verbose_forces_debug(self, no_log_file):
        """Test verbose mode with the detailed format."""
        logger = setup_logging(level=logging.ERROR, verbose=True)
        assert logger.level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == VERBOSE_FORMAT

    def test_console_level(self, no_log_file):
        """Test the console handler uses the requested level."""
        logger = setup_logging(level=logging.WARNING)
        assert logger.level == logging.WARNING
        assert logger.handlers[0].level == logging.WARNING

    def test_clears_handlers(self, no_log_file):
        """Test that repeated setup does not stack handlers."""
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        """Test that a daily log file records debug output."""
        with patch.dict(os.environ, {}, clear=True):
            logger = setup_logging(level=logging.WARNING, log_dir=tmp_path)
        logging.getLogger("orgcontact_sync.sync.engine").debug("written to file")

        assert len(logger.handlers) == 2
        assert logger.handlers[0].level == logging.WARNING
        files = list(tmp_path.glob(f"{LOG_FILE_PREFIX}*.log"))
        assert len(files) == 1
        assert "written to file" in files[0].read_text(encoding="utf-8")

    def test_child_loggers_reach_handlers(self, tmp_path):
        """Test that module loggers log through the package handlers."""
        log_file = tmp_path / "run.log"
        with patch.dict(os.environ, {"ORGCONTACT_SYNC_LOG_FILE": str(log_file)}):
            setup_logging(level=logging.INFO)
        logging.getLogger("orgcontact_sync.sync.engine").info("from engine")

        assert "from engine" in log_file.read_text(encoding="utf-8")


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs function."""

    def test_keeps_newest(self, tmp_path):
        """Test that only the newest files are kept."""
        for day in range(5):
            path = tmp_path / f"{LOG_FILE_PREFIX}2024010{day}.log"
            path.write_text("x")
            os.utime(path, (1_700_000_000 + day, 1_700_000_000 + day))
        (tmp_path / "other.log").write_text("kept")

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 3
        remaining = sorted(p.name for p in tmp_path.iterdir())
        assert remaining == [
            f"{LOG_FILE_PREFIX}20240103.log",
            f"{LOG_FILE_PREFIX}20240104.log",
            "other.log",
        ]

    def test_zero_disables(self, tmp_path):
        """Test that keep_count 0 deletes nothing."""
        (tmp_path / f"{LOG_FILE_PREFIX}1.log").write_text("x")
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_directory(self, tmp_path):
        """Test that a missing directory is not an error."""
        assert cleanup_old_logs(tmp_path / "nope") == 0

