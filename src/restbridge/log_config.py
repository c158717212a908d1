# restbridge/log_config.py
"""Logging configuration for the restbridge client using Loguru.

Every module logs through the ``logger`` re-exported here, so applications
only need to call :func:`configure_logging` once to control the level and
destination of all client output.
"""

import sys

from loguru import logger


def configure_logging(level: str = "INFO", sink=sys.stderr):
    """
    Configures Loguru logger.

    Removes default handlers and adds a new one with the specified level and sink.

    Args:
        level: The minimum logging level (e.g., "DEBUG", "INFO", "WARNING").
        sink: The output sink (e.g., sys.stderr, "file.log").
    """
    logger.remove()  # Remove default handler
    logger.add(
        sink,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=sink is sys.stderr,
        backtrace=True,
        diagnose=False,  # locals may hold bearer tokens
    )
    logger.info(
        f"Loguru logger configured with level={level.upper()} writing to {sink}"
    )


__all__ = ["configure_logging", "logger"]
