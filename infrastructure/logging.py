"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

APP_DIR_NAME = "BestShot"


def get_log_directory() -> str:
    """Get the main log directory path."""
    return str(Path.home() / ".local" / "share" / APP_DIR_NAME / "logs")


def get_update_log_directory() -> str:
    """Get the directory of the CSV update audit logs."""
    return str(Path.home() / ".local" / "share" / APP_DIR_NAME / "update_logs")


def init_logging(log_dir: str | None = None, level: str = "INFO", console: bool = False) -> None:
    """Initialize rotating file logging under the given directory."""
    if log_dir is None:
        log_dir = get_log_directory()
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "app_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level,
    )
    if console:
        logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> | {message}")


def _latest_file(directory: str, pattern: str) -> Path | None:
    try:
        path = Path(directory)
        if not path.exists():
            return None
        files = list(path.glob(pattern))
        if not files:
            return None
        return max(files, key=lambda p: p.stat().st_mtime)
    except (OSError, ValueError):
        return None


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest application log in the specified directory."""
    return _latest_file(log_dir or get_log_directory(), "app_*.log")


def find_latest_update_log(log_dir: str | None = None) -> Path | None:
    """Find the latest CSV update audit log."""
    return _latest_file(log_dir or get_update_log_directory(), "updates_*.csv")
