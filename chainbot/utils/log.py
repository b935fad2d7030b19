"""Loguru sink setup."""

import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", *, json: bool = False) -> int:
    """Replace the default sink with one stderr sink at *level*.

    Returns the loguru handler id.
    """
    logger.remove()
    return logger.add(
        sys.stderr,
        level=level.upper(),
        format=_FORMAT,
        serialize=json,
        backtrace=False,
        diagnose=False,
    )
