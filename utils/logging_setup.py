import os
import sys
import logging
import datetime

from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

DEFAULT_LOG_PREFIX = "lark_doc"
DEFAULT_MAX_LOG_FILES = 10
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_cli_logging(
    verbose: bool = False,
    log_dir: str = "",
    log_prefix: str = DEFAULT_LOG_PREFIX,
    max_files: int = DEFAULT_MAX_LOG_FILES
) -> Optional[str]:
    """Configure stderr logging and an optional per-run log file.

    Stdout is left to command output so JSON results stay parseable.

    Args:
        verbose: Log INFO records to stderr instead of WARNING and above.
        log_dir: Directory for per-run log files, empty disables the file.
        log_prefix: Log file name prefix.
        max_files: Max log files to retain.
    """

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(stream = sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    root_logger.addHandler(stream_handler)
    root_logger.setLevel(logging.INFO)

    if not log_dir:
        return None

    log_path = _new_run_log_path(log_dir = log_dir, log_prefix = log_prefix)
    file_handler = logging.FileHandler(log_path, encoding = "utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    _cleanup_old_log_files(
        log_dir = log_dir,
        log_prefix = log_prefix,
        max_files = max_files
    )
    logger.info("log file ready: %s", log_path)
    return log_path


def _new_run_log_path(log_dir: str, log_prefix: str) -> str:
    """Return a fresh log file path for this run.

    Microseconds and the pid keep paths unique across concurrent runs.

    Args:
        log_dir: Log directory path, created when missing.
        log_prefix: Log file name prefix.
    """

    directory = Path(log_dir)
    directory.mkdir(parents = True, exist_ok = True)
    stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return str(directory / f"{log_prefix}_{stamp}_{os.getpid()}.log")


def _cleanup_old_log_files(log_dir: str, log_prefix: str, max_files: int) -> None:
    """Delete all but the newest `max_files` logs written under one prefix.

    Args:
        log_dir: Log directory path.
        log_prefix: Log file name prefix.
        max_files: Max log files to retain.
    """

    directory = Path(log_dir)
    if max_files < 1 or not directory.is_dir():
        return

    run_logs = [path for path in directory.glob(f"{log_prefix}_*.log") if path.is_file()]
    run_logs.sort(key = lambda path: path.stat().st_mtime, reverse = True)
    for stale in run_logs[max_files:]:
        try:
            stale.unlink()
        except OSError as exc:
            logger.warning("stale log not removed: path = %s, err = %s", stale, str(exc))
