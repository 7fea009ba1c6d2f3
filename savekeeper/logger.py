"""Loguru-based logging setup."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}"
_CONSOLE_DEBUG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | "
    "<cyan>{thread.name}</cyan> | {message}"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {thread.name} | {name}:{line} | {message}"


def setup_logger(log_dir: Path | None = None, level: str = "INFO", console: bool = True) -> None:
    """
    Configure loguru sinks.

    - stderr at ``level``; the thread name is shown at DEBUG since backups
      run on the scheduler and worker-pool threads.
    - ``savekeeper.log``: everything, rotated at 5 MB.
    - ``errors.log``: warnings and up, kept longer. Failed restores log the
      undo snapshot path here.
    """
    logger.remove()
    level = level.upper()

    if console:
        logger.add(
            sys.stderr,
            level=level,
            format=_CONSOLE_DEBUG_FORMAT if level in ("TRACE", "DEBUG") else _CONSOLE_FORMAT,
            colorize=True,
        )

    if not log_dir:
        return

    log_dir.mkdir(parents=True, exist_ok=True)
    # enqueue: sinks are written from several threads
    logger.add(
        str(log_dir / "savekeeper.log"),
        level="DEBUG",
        format=_FILE_FORMAT,
        rotation="5 MB",
        retention="7 days",
        encoding="utf-8",
        enqueue=True,
    )
    logger.add(
        str(log_dir / "errors.log"),
        level="WARNING",
        format=_FILE_FORMAT,
        rotation="1 MB",
        retention="30 days",
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
