"""Logging helpers shared by the API and the session core."""
import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured: set[str] = set()


def _resolve(level: Optional[str]) -> int:
    return getattr(logging, (level or "INFO").upper(), logging.INFO)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Logger writing to stdout with the shared format.
    """
    name = name or "session_auth"
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_resolve(os.getenv("LOG_LEVEL", "INFO")))
        _configured.add(name)

    return logger


def set_level(level: str) -> None:
    """Apply LOG_LEVEL from the app config to every logger built by get_logger."""
    for name in _configured:
        logging.getLogger(name).setLevel(_resolve(level))
