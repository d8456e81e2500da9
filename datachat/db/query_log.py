"""
Query history -- records every question / QuerySpec -> result cycle.

The table is created automatically on first use via `ensure_log_table()`.
Writes never raise: a failed insert is logged and the request continues.
"""
from __future__ import annotations

import json
import datetime
from typing import Any

from sqlalchemy import text

from datachat.db.connection import get_engine
from datachat.core.logging import get_logger

logger = get_logger(__name__)

_TABLE = "query_logs"

_CREATE_SQL = f"""
CREATE TABLE IF NOT EXISTS {_TABLE} (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    dataset_id      VARCHAR(32) NOT NULL,
    question        TEXT,          -- NULL for structured queries
    mode            VARCHAR(20) NOT NULL DEFAULT 'structured',
    query_spec      TEXT,          -- JSON object
    chart_type      VARCHAR(20),
    row_count       INTEGER,
    success         BOOLEAN NOT NULL DEFAULT TRUE,
    error           TEXT,
    source          VARCHAR(40),
    latency_ms      INTEGER,
    created_at      VARCHAR(40) NOT NULL
);
"""


def ensure_log_table() -> None:
    """Create the query log table if it doesn't exist."""
    engine = get_engine()
    ddl = _CREATE_SQL
    if engine.dialect.name != "sqlite":
        ddl = ddl.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    with engine.connect() as conn:
        conn.execute(text(ddl))
        conn.commit()
    logger.info("Query log table '%s' ensured", _TABLE)


def log_query(
    dataset_id: str,
    question: str | None,
    mode: str,
    spec: dict[str, Any] | None,
    row_count: int,
    error: str | None,
    source: str | None,
    latency_ms: int,
) -> None:
    """Insert one row into the query log table."""
    insert_sql = text(f"""
        INSERT INTO {_TABLE}
            (dataset_id, question, mode, query_spec, chart_type, row_count,
             success, error, source, latency_ms, created_at)
        VALUES
            (:dataset_id, :question, :mode, :query_spec, :chart_type, :row_count,
             :success, :error, :source, :latency_ms, :created_at)
    """)

    params = {
        "dataset_id": dataset_id,
        "question": question,
        "mode": mode,
        "query_spec": json.dumps(spec) if spec else None,
        "chart_type": spec.get("chart_type") if spec else None,
        "row_count": row_count,
        "success": error is None,
        "error": error,
        "source": source,
        "latency_ms": latency_ms,
        "created_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }

    try:
        with get_engine().connect() as conn:
            conn.execute(insert_sql, params)
            conn.commit()
        logger.debug("Query logged: dataset=%s question=%s", dataset_id, (question or "")[:80])
    except Exception:
        logger.exception("Failed to log query -- continuing without logging")


def list_queries(dataset_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
    """Most recent history entries, optionally for one dataset."""
    where = "WHERE dataset_id = :dataset_id" if dataset_id else ""
    params: dict[str, Any] = {"limit": limit}
    if dataset_id:
        params["dataset_id"] = dataset_id
    sql = text(f"""
        SELECT id, dataset_id, question, mode, query_spec, chart_type, row_count,
               success, error, source, latency_ms, created_at
        FROM {_TABLE} {where}
        ORDER BY id DESC
        LIMIT :limit
    """)
    with get_engine().connect() as conn:
        rows = conn.execute(sql, params).fetchall()

    entries: list[dict[str, Any]] = []
    for row in rows:
        entry = dict(row._mapping)
        entry["query_spec"] = json.loads(entry["query_spec"]) if entry["query_spec"] else None
        entry["success"] = bool(entry["success"])
        entries.append(entry)
    return entries


def delete_queries(dataset_id: str) -> int:
    """Remove a dataset's history. Returns rows deleted."""
    with get_engine().connect() as conn:
        result = conn.execute(text(f"DELETE FROM {_TABLE} WHERE dataset_id = :dataset_id"),
                              {"dataset_id": dataset_id})
        conn.commit()
    return result.rowcount
