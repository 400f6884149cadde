"""Logging setup for gymflow."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from gymflow.models import LoggingConfig


CONSOLE_FORMAT = (
    "<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def parse_size(size_str: str) -> int:
    """Parse a human-readable size string to bytes.

    Examples:
        "10MB" -> 10485760
        "500KB" -> 512000
        "1024" -> 1024
    """
    size_str = size_str.strip().upper()

    if size_str.isdigit():
        return int(size_str)

    match = re.match(r"^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB)?$", size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    multipliers = {
        "B": 1,
        "KB": 1024,
        "MB": 1024 * 1024,
        "GB": 1024 * 1024 * 1024,
    }
    return int(float(match.group(1)) * multipliers[match.group(2) or "B"])


def setup_logging(config: "LoggingConfig | None" = None, verbose: bool = False) -> None:
    """Configure loguru sinks.

    Replaces the default sink with a colorized stderr sink and, when a log
    file is configured, adds a size-rotated file sink.

    Args:
        config: Logging configuration (default: console only, INFO)
        verbose: Force DEBUG level on the console
    """
    logger.remove()

    level = "DEBUG" if verbose else (config.level if config else "INFO")

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        colorize=True,
    )

    if config is None or not config.file:
        return

    log_file = Path(config.file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        format=FILE_FORMAT,
        level=config.file_level,
        rotation=parse_size(config.max_size),
        retention=config.rotate,
        encoding="utf-8",
    )
    logger.debug(f"Logging to {log_file} (rotate at {config.max_size}, keep {config.rotate})")
