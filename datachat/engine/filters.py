"""
Filter evaluator -- keeps the rows that satisfy every predicate.

Numeric operators coerce both sides to numbers, so a missing or
non-numeric cell becomes NaN and fails every comparison.  ``contains``
works on the text form of both sides; a missing cell is the text "undefined".
"""
from __future__ import annotations

import operator
from typing import Any, Callable, Iterable

from datachat.engine.spec import Filter, Row, Table
from datachat.engine.values import to_number, to_text

_NUMERIC_OPS: dict[str, Callable[[float, float], bool]] = {
    "gt": operator.gt,
    "lt": operator.lt,
    "gte": operator.ge,
    "lte": operator.le,
}


def matches(row: Row, flt: Filter) -> bool:
    """Evaluate one predicate against one row."""
    value: Any = row.get(flt.field)
    op = flt.operator

    if op == "eq":
        return value == flt.value
    if op == "neq":
        return value != flt.value
    if op in _NUMERIC_OPS:
        return _NUMERIC_OPS[op](to_number(value), to_number(flt.value))
    if op == "contains":
        return to_text(flt.value) in to_text(value)
    if op == "not_contains":
        return to_text(flt.value) not in to_text(value)
    raise ValueError(f"Unknown filter operator '{op}'")


def apply_filters(rows: Table, filters: Iterable[Filter]) -> Table:
    """Return a new list with the rows matching *all* filters."""
    filters = list(filters)
    if not filters:
        return list(rows)
    return [row for row in rows if all(matches(row, f) for f in filters)]
