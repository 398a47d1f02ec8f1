"""Logger setup shared by all modules."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logger(name: str, level: str = None) -> logging.Logger:
    """
    Get a logger with a single stream handler attached.

    Args:
        name: Logger name (usually __name__)
        level: Log level name, defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    logger.setLevel((level or os.environ.get("LOG_LEVEL", "INFO")).upper())
    return logger
