"""Loguru sinks for the CLI and the import workers."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> <level>{level:<7}</level> {message}"
# Workers log concurrently, so the file sink records the thread
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level:<7} [{thread.name}] {name}:{function}:{line} {message}"
LOG_FILE_NAME = "gameshelf.log"
LOG_ROTATION = "5 MB"
LOG_RETENTION = "7 days"


def setup_logger(log_dir: Path | None = None, verbose: bool = False) -> Path | None:
    """Replace loguru's default sink; returns the log file path when one is configured."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO", format=CONSOLE_FORMAT, colorize=True)

    if log_dir is None:
        return None
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    logger.add(
        log_file,
        level="DEBUG",
        format=FILE_FORMAT,
        rotation=LOG_ROTATION,
        retention=LOG_RETENTION,
        encoding="utf-8",
        enqueue=True,
    )
    return log_file
