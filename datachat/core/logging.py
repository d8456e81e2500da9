"""
Logging for the datachat service.

Every module logger lives under the ``datachat`` hierarchy and shares one
stdout handler installed on that root, so the level from ``LOG_LEVEL``
applies to the whole package in one place.
"""
from __future__ import annotations

import logging
import sys

from datachat.core.config import get_settings

ROOT_LOGGER = "datachat"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        root.setLevel(getattr(logging, get_settings().log_level.upper(), logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, re-parented under ``datachat`` when needed."""
    _root()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
