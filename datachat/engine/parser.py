"""
Row parser -- raw CSV / JSON text into a Table, plus column-type sniffing.

The CSV reader is deliberately naive: the header line defines the columns
and every following line is split on commas.  There is no quote handling,
so a quoted field containing a comma shifts the remaining values one
column to the right.

Schema inference only looks at the first data row.  A column whose first
value is blank or atypical is misclassified; that is accepted behaviour.
"""
from __future__ import annotations

import datetime
import json
import re
from pathlib import PurePath
from typing import Any

from datachat.engine.spec import ColumnSchema, Table
from datachat.engine.values import is_numeric, parse_number
from datachat.core.logging import get_logger

logger = get_logger(__name__)

FORMAT_CSV = "csv"
FORMAT_JSON = "json"
SUPPORTED_FORMATS = (FORMAT_CSV, FORMAT_JSON)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


# ── CSV ─────────────────────────────────────────────────

def parse_csv(text: str, limit: int | None = None) -> Table:
    """Parse comma-separated *text* into rows keyed by the header names.

    Numeric-looking values become numbers; everything else stays a string.
    Blank lines are skipped.  *limit* caps the number of data rows.
    """
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or not lines[0].strip():
        return []

    headers = [h.strip() for h in lines[0].split(",")]
    rows: Table = []
    for line in lines[1:]:
        if limit is not None and len(rows) >= limit:
            break
        if not line.strip():
            continue
        values = [v.strip() for v in line.split(",")]
        row: dict[str, Any] = {}
        for index, header in enumerate(headers):
            if not header:
                continue
            raw = values[index] if index < len(values) else ""
            number = parse_number(raw)
            row[header] = raw if number is None else number
        rows.append(row)
    return rows


# ── JSON ────────────────────────────────────────────────

def parse_json(text: str, limit: int | None = None) -> Table:
    """Parse a JSON array of objects (or a single object) into rows."""
    if not text.strip():
        return []
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid JSON dataset, returning empty table: %s", exc)
        return []

    items = payload if isinstance(payload, list) else [payload]
    rows: Table = [dict(item) for item in items if isinstance(item, dict)]
    if len(rows) < len(items):
        logger.warning("Skipped %d non-object JSON items", len(items) - len(rows))
    return rows if limit is None else rows[:limit]


# ── Dispatch ────────────────────────────────────────────

def detect_format(file_name: str) -> str | None:
    """Return ``csv`` / ``json`` from the file extension, or None."""
    suffix = PurePath(file_name).suffix.lower().lstrip(".")
    return suffix if suffix in SUPPORTED_FORMATS else None


def parse_table(text: str, file_format: str = FORMAT_CSV, limit: int | None = None) -> Table:
    """Parse *text* in the given format.  Never raises on bad content."""
    if file_format == FORMAT_JSON:
        rows = parse_json(text, limit=limit)
    elif file_format == FORMAT_CSV:
        rows = parse_csv(text, limit=limit)
    else:
        raise ValueError(f"Unsupported file format '{file_format}'. Choose from: {', '.join(SUPPORTED_FORMATS)}")
    logger.debug("Parsed %d rows (%s)", len(rows), file_format)
    return rows


# ── Schema inference ────────────────────────────────────

def _looks_like_date(value: str) -> bool:
    if not _ISO_DATE_RE.match(value):
        return False
    try:
        datetime.date.fromisoformat(value[:10])
    except ValueError:
        return False
    return True


def infer_type(value: Any) -> str:
    """Classify a single sample value into a column type tag."""
    if isinstance(value, bool):
        return "boolean"
    if is_numeric(value):
        return "number"
    if isinstance(value, str):
        s = value.strip()
        if s and parse_number(s) is not None:
            return "number"
        if s.lower() in ("true", "false"):
            return "boolean"
        if _looks_like_date(s):
            return "date"
    return "string"


def infer_schema(rows: Table) -> ColumnSchema:
    """Infer a column schema from the first row of *rows*."""
    if not rows:
        return {}
    return {column: infer_type(value) for column, value in rows[0].items()}
