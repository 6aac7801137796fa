"""Loguru sinks for the hypermem CLI and long-running scheduler."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def default_log_path() -> Path:
    return Path.home() / ".hypermem" / "hypermem.log"


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> Path:
    """
    Replace loguru's default sink with a console sink and a rotating file sink.

    The file always receives DEBUG and above, so per-guild decay results
    and extraction decisions are kept even when the console is quiet.

    Args:
        level: Console level
        log_file: Log file path (defaults to ~/.hypermem/hypermem.log)
        verbose: Force DEBUG on the console

    Returns:
        The log file path in use
    """
    logger.remove()

    path = log_file or default_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    console_level = "DEBUG" if verbose else level.upper()
    logger.add(sys.stderr, level=console_level, format=CONSOLE_FORMAT, diagnose=False)
    logger.add(
        str(path),
        level="DEBUG",
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        enqueue=True,
    )

    logger.debug(f"Logging to {path} (console level {console_level})")
    return path
