"""Logging setup for the trailmap logger hierarchy."""

import logging
import sys

LOGGER_NAME = "trailmap"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the ``trailmap`` logger once.

    Module loggers created with ``logging.getLogger(__name__)`` inside the
    package propagate here. Calling this repeatedly only updates the level.

    Args:
        level: Logging level name, e.g. "DEBUG" or "INFO".

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
