"""Logging setup for depgraph commands.

Console records go to stderr so reports and JSON on stdout stay parseable.
File records are plain text, one timestamped file per command run.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config.models import LoggingConfig

LOG_FILE_PREFIX = "depgraph_"

LEVEL_COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
}
RESET = "\033[0m"

# Libraries that log while config and task files are parsed
QUIET_LOGGERS = ("yaml", "pydantic")


class DepgraphFormatter(logging.Formatter):
    """One line per record: time, level, short logger name, message.

    Records logged with ``extra={"task_id": ...}`` carry the id in brackets
    ahead of the message.
    """

    def __init__(self, use_colors: bool = True):
        """Initialize formatter.

        Args:
            use_colors: Color the level name when stderr is a terminal
        """
        super().__init__()
        self.use_colors = use_colors

    def _level(self, levelname: str) -> str:
        if not (self.use_colors and sys.stderr.isatty()):
            return levelname
        return f"{LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        short_name = record.name.rsplit(".", 1)[-1]

        message = record.getMessage()
        task_id = getattr(record, "task_id", None)
        if task_id:
            message = f"[{task_id}] {message}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"[{when}] {self._level(record.levelname):8} {short_name:12} {message}"


def run_log_path(log_dir: Path) -> Path:
    """Timestamped log file for one command run."""
    return Path(log_dir) / f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d_%H%M%S}.log"


def prune_logs(log_dir: Path, retention_days: int) -> int:
    """Delete run logs older than the retention window.

    Args:
        log_dir: Directory holding run logs
        retention_days: Age limit in days (<= 0 keeps everything)

    Returns:
        Number of files removed
    """
    if retention_days <= 0 or not log_dir.is_dir():
        return 0

    cutoff = datetime.now().timestamp() - retention_days * 86400
    removed = 0
    for path in log_dir.glob(f"{LOG_FILE_PREFIX}*.log*"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            continue
    return removed


def _console_handler(use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(DepgraphFormatter(use_colors=use_colors))
    return handler


def _file_handler(log_file: Path, rotation_mb: int, retention_days: int) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=max(1, rotation_mb) * 1024 * 1024,
        backupCount=max(1, retention_days),
    )
    handler.setFormatter(DepgraphFormatter(use_colors=False))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    rotation_mb: int = 10,
    retention_days: int = 7,
    use_colors: bool = True,
    console: bool = True,
) -> None:
    """Replace the root logger's handlers.

    Args:
        level: Log level name, any case
        log_file: Explicit log file path
        log_dir: Directory for a per-run log file (ignored if log_file is set)
        rotation_mb: Max log size before rotation (MB)
        retention_days: Days to keep old run logs (<= 0 disables pruning)
        use_colors: Whether console output may be colored
        console: Whether to log to stderr

    Raises:
        AttributeError: If level is not a logging level name
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers.clear()

    handlers: list[logging.Handler] = []
    if console:
        handlers.append(_console_handler(use_colors))

    if log_file is None and log_dir is not None:
        log_file = run_log_path(log_dir)
    if log_file is not None:
        log_file = Path(log_file)
        handlers.append(_file_handler(log_file, rotation_mb, retention_days))
        prune_logs(log_file.parent, retention_days)

    # No handler at all would let logging.lastResort print warnings to stderr
    for handler in handlers or [logging.NullHandler()]:
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging(config: LoggingConfig, verbose: bool = False, to_file: bool = True) -> None:
    """Apply a LoggingConfig for one CLI command.

    Verbose runs send DEBUG records to the console. Otherwise the console
    stays silent and records only reach the log directory.

    Args:
        config: Logging section of the loaded configuration
        verbose: Whether --verbose was given
        to_file: Whether to write a run log under config.log_dir
    """
    setup_logging(
        level="DEBUG" if verbose else config.level,
        log_dir=config.log_dir if to_file else None,
        rotation_mb=config.rotation_mb,
        retention_days=config.retention_days,
        console=verbose,
    )
