# backend/commerce/logging/setup.py
"""Sink configuration for loguru."""

import sys

from loguru import logger

from ..config import Settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time} | {level} | {name}:{function}:{line} - {message}"


def setup_logging(app_settings: Settings) -> None:
    """Replace loguru's default sink with console and optional file sinks."""
    logger.remove()
    level = app_settings.log_level.value

    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=app_settings.environment == "development",
        backtrace=app_settings.environment == "development",
    )

    if app_settings.log_file:
        try:
            logger.add(
                app_settings.log_file,
                level=level,
                format=FILE_FORMAT,
                rotation="10 MB",
                retention="14 days",
                enqueue=True,
            )
        except OSError as e:
            logger.error(f"Failed to setup file logging at {app_settings.log_file}: {e}")
            raise

    logger.info(f"Logging configured at {level} ({app_settings.environment})")
