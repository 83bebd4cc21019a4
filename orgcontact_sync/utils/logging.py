"""
Logging setup for the orgcontact-sync command line.

All modules log through ``logging.getLogger(__name__)``; this module only
attaches handlers to the ``orgcontact_sync`` package logger:
- a console handler on stderr, with colored level names on a terminal
- a daily log file that always records DEBUG output
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "orgcontact_sync"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Daily files are named orgcontact_sync_YYYYMMDD.log
LOG_FILE_PREFIX = "orgcontact_sync_"
DEFAULT_LOG_DIR = Path.home() / ".orgcontact-sync" / "logs"

ENV_LOG_LEVEL = "ORGCONTACT_SYNC_LOG_LEVEL"
ENV_DEBUG = "ORGCONTACT_SYNC_DEBUG"
ENV_LOG_FILE = "ORGCONTACT_SYNC_LOG_FILE"

_DISABLED_FILE_VALUES = ("none", "disabled", "")


def _stderr_supports_color() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    if isatty is None or not isatty():
        return False
    # https://no-color.org/
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name in an ANSI color."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and _stderr_supports_color()

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().format(record)

        # Color a copy so other handlers see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def get_log_level_from_env() -> int:
    """
    Resolve the console level from the environment.

    ORGCONTACT_SYNC_DEBUG wins over ORGCONTACT_SYNC_LOG_LEVEL. Any level name
    the logging module knows is accepted; anything else means INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG

    name = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Get today's log file, or None when file logging is switched off.

    ORGCONTACT_SYNC_LOG_FILE names an explicit file; "none" or an empty
    value disables the file.
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.lower() in _DISABLED_FILE_VALUES:
            return None
        return Path(override)

    day = datetime.now().strftime("%Y%m%d")
    return (log_dir or DEFAULT_LOG_DIR) / f"{LOG_FILE_PREFIX}{day}.log"


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach console and file handlers to the package logger.

    Calling it again replaces the previous handlers.

    Args:
        level: Console level (default: from the environment)
        verbose: Force DEBUG with the detailed format
        log_dir: Directory for the daily log file

    Returns:
        The package logger
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(VERBOSE_FORMAT if verbose else CONSOLE_FORMAT, DATE_FORMAT)
    )
    logger.addHandler(console)

    file_path = get_log_file_path(log_dir)
    if file_path is None:
        return logger

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not open log file {file_path}: {e}")
        return logger

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)
    # The file records DEBUG even when the console is quieter
    logger.setLevel(logging.DEBUG)
    logger.debug(f"Log file: {file_path}")
    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest ``keep_count`` daily log files.

    A keep_count of 0 keeps everything. Returns the number deleted.
    """
    directory = log_dir or DEFAULT_LOG_DIR
    if keep_count <= 0 or not directory.is_dir():
        return 0

    logs = sorted(
        directory.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for old_log in logs[keep_count:]:
        try:
            old_log.unlink()
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not remove {old_log}: {e}")
            continue
        deleted += 1
    return deleted
