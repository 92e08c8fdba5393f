"""Loguru sink configuration for the API, CLI and tests."""

from __future__ import annotations

import sys

from loguru import logger

from config import Settings, get_settings

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {name} | {message}"


def configure_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """Replace loguru's default sink with the configured ones."""
    settings = settings or get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or settings.log_level,
        format=CONSOLE_FORMAT,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
