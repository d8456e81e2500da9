"""
Query pipeline -- filter -> group/aggregate -> sort -> limit -> assemble.

``run_query`` is the single entry point used by every caller.  It never
raises: a failure anywhere in the pipeline comes back as a QueryResult
with an ``error`` message and no data, so callers can render it inline.
"""
from __future__ import annotations

from typing import Iterable

from datachat.engine.aggregate import aggregate
from datachat.engine.filters import apply_filters
from datachat.engine.sorting import apply_limit, sort_rows
from datachat.engine.spec import QueryResult, QuerySpec, Row, Table
from datachat.core.logging import get_logger

logger = get_logger(__name__)


def collect_columns(rows: Iterable[Row]) -> list[str]:
    """Union of keys across all rows, in first-appearance order."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def assemble(rows: Table) -> QueryResult:
    return QueryResult(data=rows, columns=collect_columns(rows))


def execute(rows: Table, spec: QuerySpec) -> Table:
    """Run the pipeline stages; exceptions propagate."""
    result = apply_filters(rows, spec.filters)
    if spec.dimensions:
        result = aggregate(result, spec.dimensions, spec.measures)
    result = sort_rows(result, spec.sort)
    return apply_limit(result, spec.limit)


def run_query(rows: Table, spec: QuerySpec) -> QueryResult:
    """Execute *spec* over *rows* and package the result."""
    try:
        result = execute(rows, spec)
    except Exception as exc:
        logger.exception("Query pipeline failed")
        return QueryResult(data=[], columns=[], error=str(exc) or exc.__class__.__name__)

    logger.debug("Pipeline: %d rows in -> %d rows out", len(rows), len(result))
    return assemble(result)
