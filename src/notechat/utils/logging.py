"""
Logging utilities.

Modules log through ``logging.getLogger(__name__)``. Their records
propagate to the ``notechat`` package logger, which holds the only handler.
"""

import logging
import sys

PACKAGE_LOGGER = "notechat"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _attach_handler(logger: logging.Logger) -> logging.Logger:
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger writing to stderr, through the package handler when the
        name is inside the package
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        _attach_handler(logging.getLogger(PACKAGE_LOGGER))
        return logging.getLogger(name)

    return _attach_handler(logging.getLogger(name))


def set_log_level(level: int | str) -> None:
    """
    Set the package log level.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or its number

    Raises:
        ValueError: If the level name is unknown
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    _attach_handler(logging.getLogger(PACKAGE_LOGGER)).setLevel(level)
