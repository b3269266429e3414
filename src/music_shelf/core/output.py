"""
Unified output system using Loguru.
User-facing messages go to the log file and the console in one call.
"""

import sys
from pathlib import Path

from loguru import logger

from .config import LoggingConfig, get_data_dir
from .console import get_console


def get_log_file_path() -> Path:
    """Get the path to the log file."""
    return get_data_dir() / "music-shelf.log"


def setup_loguru(logging_config: LoggingConfig) -> Path:
    """
    Configure loguru with a rotating file sink (and optional stderr sink).

    Args:
        logging_config: Logging section of the loaded configuration

    Returns:
        Path of the log file in use
    """
    log_file = (
        Path(logging_config.log_file)
        if logging_config.log_file
        else get_log_file_path()
    )
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=f"{logging_config.max_file_size_mb} MB",
        retention=logging_config.backup_count,
        level=logging_config.level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    if logging_config.console_output:
        logger.add(sys.stderr, level=logging_config.level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={logging_config.level})")
    return log_file


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to the log file AND prints to the console.

    Use this instead of print() for user-facing messages that should also be logged.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level)
    log_func(message)

    color_map = {
        "debug": "cyan",
        "info": "white",
        "warning": "yellow",
        "error": "red",
    }
    get_console().print(message, style=color_map.get(level, "white"), markup=False)
