"""
Data source providers -- where a query's table comes from.

A query walks an ordered list of providers and uses the first one that
produces rows.  Each provider either returns a non-empty Table or raises
``DataSourceError``; the failures are collected so callers can report why
a table was empty.

Providers:
  InlineRowsProvider  -- rows sent along with the request (preview data)
  StoredFileProvider  -- download the dataset file from the object store and parse it
  SampleDataProvider  -- fabricate rows from the column schema (opt-in, last resort)
"""
from __future__ import annotations

import datetime
import zlib
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from faker import Faker

from datachat.engine.parser import parse_table
from datachat.engine.spec import ColumnSchema, Table
from datachat.storage.object_store import LocalObjectStore, StorageError
from datachat.core.logging import get_logger

logger = get_logger(__name__)


class DataSourceError(Exception):
    """Raised by a provider that cannot produce a table."""


class DataSourceProvider(Protocol):
    name: str

    def load(self) -> Table:
        ...


@dataclass
class SourceResult:
    table: Table
    source: str | None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.source is not None


# ── Providers ───────────────────────────────────────────


class InlineRowsProvider:
    name = "inline"

    def __init__(self, rows: Table | None):
        self.rows = rows or []

    def load(self) -> Table:
        if not self.rows:
            raise DataSourceError("No inline rows supplied")
        return list(self.rows)


class StoredFileProvider:
    name = "storage"

    def __init__(self, store: LocalObjectStore, storage_path: str, file_format: str,
                 max_rows: int | None = None):
        self.store = store
        self.storage_path = storage_path
        self.file_format = file_format
        self.max_rows = max_rows

    def load(self) -> Table:
        try:
            raw = self.store.download(self.storage_path)
        except StorageError as exc:
            raise DataSourceError(str(exc)) from exc
        text = raw.decode("utf-8-sig", errors="replace")
        rows = parse_table(text, self.file_format, limit=self.max_rows)
        if not rows:
            raise DataSourceError(f"Stored file '{self.storage_path}' has no data rows")
        return rows


_NAME_HINTS: dict[str, str] = {
    "name": "name",
    "city": "city",
    "country": "country",
    "region": "state",
    "state": "state",
    "company": "company",
    "email": "email",
    "product": "word",
    "category": "word",
}


class SampleDataProvider:
    """Deterministic fake rows shaped like *schema*.

    Seeded from ``seed_key`` so the same dataset always gets the same
    sample rows.
    """

    name = "sample"

    def __init__(self, schema: ColumnSchema, rows: int = 50, seed_key: str = "datachat"):
        self.schema = schema
        self.rows = rows
        self.fake = Faker()
        self.fake.seed_instance(zlib.crc32(seed_key.encode()))

    def _value(self, column: str, col_type: str):
        if col_type in ("number", "integer"):
            return self.fake.pyint(min_value=0, max_value=1000)
        if col_type == "boolean":
            return self.fake.pybool()
        if col_type == "date":
            return self.fake.date_between(
                start_date=datetime.date(2024, 1, 1), end_date=datetime.date(2025, 12, 31),
            ).isoformat()
        lowered = column.lower()
        for hint, method in _NAME_HINTS.items():
            if hint in lowered:
                value = getattr(self.fake, method)()
                return value.title() if method == "word" else value
        return f"{column} {self.fake.random_uppercase_letter()}"

    def load(self) -> Table:
        if not self.schema:
            raise DataSourceError("Cannot generate sample data without a column schema")
        return [
            {column: self._value(column, col_type) for column, col_type in self.schema.items()}
            for _ in range(self.rows)
        ]


# ── Fallback chain ──────────────────────────────────────


def load_first_available(providers: Sequence[DataSourceProvider]) -> SourceResult:
    """Return the table from the first provider that succeeds."""
    errors: list[str] = []
    for provider in providers:
        try:
            table = provider.load()
        except DataSourceError as exc:
            logger.warning("Data source '%s' failed: %s", provider.name, exc)
            errors.append(f"{provider.name}: {exc}")
            continue
        logger.info("Loaded %d rows from source '%s'", len(table), provider.name)
        return SourceResult(table=table, source=provider.name, errors=errors)

    logger.error("No data source produced rows (%d tried)", len(providers))
    return SourceResult(table=[], source=None, errors=errors)
