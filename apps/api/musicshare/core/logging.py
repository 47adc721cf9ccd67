"""Loguru configuration shared by the API process and its tooling."""

import sys

from loguru import logger

from .settings import Settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def setup_logging(settings: Settings) -> None:
    """
    Configure loguru sinks.

    Console output always goes to stderr; a rotating file sink is added when
    LOG_FILE is set.
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL, format=LOG_FORMAT)

    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="10 MB",
            retention=5,  # Keep 5 backup files
            level=settings.LOG_LEVEL,
            format=LOG_FORMAT,
            enqueue=True,
        )

    logger.debug(f"Logging initialized (level={settings.LOG_LEVEL})")
