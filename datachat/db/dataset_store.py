"""
Dataset catalog -- metadata for every uploaded dataset.

The raw file lives in the object store; this table records where, plus the
inferred column schema and row count.  The table is created automatically
via `ensure_dataset_table()`.
"""
from __future__ import annotations

import json
import datetime
from dataclasses import dataclass, field, asdict
from typing import Any

from sqlalchemy import text

from datachat.db.connection import get_engine
from datachat.core.logging import get_logger

logger = get_logger(__name__)

_TABLE = "datasets"

_CREATE_SQL = f"""
CREATE TABLE IF NOT EXISTS {_TABLE} (
    id              VARCHAR(32) PRIMARY KEY,
    name            VARCHAR(255) NOT NULL,
    file_name       VARCHAR(255) NOT NULL,
    file_format     VARCHAR(10) NOT NULL,
    storage_path    TEXT NOT NULL,
    column_schema   TEXT,          -- JSON object
    row_count       INTEGER NOT NULL DEFAULT 0,
    created_at      VARCHAR(40) NOT NULL
);
"""

_COLUMNS = "id, name, file_name, file_format, storage_path, column_schema, row_count, created_at"


@dataclass
class Dataset:
    id: str
    name: str
    file_name: str
    file_format: str
    storage_path: str
    column_schema: dict[str, str] = field(default_factory=dict)
    row_count: int = 0
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _from_row(row: Any) -> Dataset:
    data = dict(row._mapping)
    data["column_schema"] = json.loads(data["column_schema"]) if data.get("column_schema") else {}
    return Dataset(**data)


def ensure_dataset_table() -> None:
    engine = get_engine()
    with engine.connect() as conn:
        conn.execute(text(_CREATE_SQL))
        conn.commit()
    logger.info("Dataset table '%s' ensured", _TABLE)


def create_dataset(
    dataset_id: str,
    name: str,
    file_name: str,
    file_format: str,
    storage_path: str,
    column_schema: dict[str, str],
    row_count: int,
) -> Dataset:
    """Insert one dataset row and return it."""
    dataset = Dataset(
        id=dataset_id,
        name=name,
        file_name=file_name,
        file_format=file_format,
        storage_path=storage_path,
        column_schema=column_schema,
        row_count=row_count,
        created_at=datetime.datetime.now(datetime.timezone.utc).isoformat(),
    )
    params = dataset.to_dict()
    params["column_schema"] = json.dumps(column_schema)

    engine = get_engine()
    with engine.connect() as conn:
        conn.execute(
            text(f"""
                INSERT INTO {_TABLE} ({_COLUMNS})
                VALUES (:id, :name, :file_name, :file_format, :storage_path,
                        :column_schema, :row_count, :created_at)
            """),
            params,
        )
        conn.commit()
    logger.info("Dataset recorded id=%s name=%s rows=%d", dataset_id, name, row_count)
    return dataset


def get_dataset(dataset_id: str) -> Dataset | None:
    engine = get_engine()
    with engine.connect() as conn:
        row = conn.execute(
            text(f"SELECT {_COLUMNS} FROM {_TABLE} WHERE id = :id"),
            {"id": dataset_id},
        ).first()
    return _from_row(row) if row is not None else None


def list_datasets() -> list[Dataset]:
    """All datasets, newest first."""
    engine = get_engine()
    with engine.connect() as conn:
        rows = conn.execute(text(f"SELECT {_COLUMNS} FROM {_TABLE} ORDER BY created_at DESC")).fetchall()
    return [_from_row(r) for r in rows]


def delete_dataset(dataset_id: str) -> bool:
    engine = get_engine()
    with engine.connect() as conn:
        result = conn.execute(text(f"DELETE FROM {_TABLE} WHERE id = :id"), {"id": dataset_id})
        conn.commit()
    return result.rowcount > 0
