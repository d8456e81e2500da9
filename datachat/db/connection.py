"""SQLAlchemy engine.

Single shared engine for the dataset catalog and the query history.
SQLite is the default; any SQLAlchemy URL works through ``DATABASE_URL``.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from datachat.core.config import get_settings
from datachat.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        url = get_settings().database_url
        kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": False}
        if url.startswith("sqlite"):
            # API requests are served from a thread pool
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs.update(pool_size=5, max_overflow=10)
        _engine = create_engine(url, **kwargs)
        logger.info("DB engine created  url=%s", _engine.url.render_as_string(hide_password=True))
    return _engine

