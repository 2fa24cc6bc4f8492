"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from gym_booking.utils.config import get_settings


PACKAGE_LOGGER = "gym_booking"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-request chatter from the server and test client.
_QUIET_LOGGERS = ("uvicorn.access", "httpx")

_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    ``level`` applies to the ``gym_booking`` package only, so setting
    ``GYM_LOG_LEVEL=DEBUG`` exposes booking attempt transitions without
    turning on debug output for every library in the process.
    """
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stdout)
    logging.getLogger(PACKAGE_LOGGER).setLevel(resolved_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
