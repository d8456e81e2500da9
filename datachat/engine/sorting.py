"""
Sort / limit stage.
"""
from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Sequence

from datachat.engine.spec import Row, SortKey, Table


def _compare_values(a: Any, b: Any) -> int:
    """Native ordering; values that cannot be ordered compare as equal."""
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        return 0
    return 0


def _comparator(keys: Sequence[SortKey]):
    def compare(left: Row, right: Row) -> int:
        for key in keys:
            result = _compare_values(left.get(key.field), right.get(key.field))
            if result:
                return result if key.direction == "asc" else -result
        return 0
    return compare


def sort_rows(rows: Table, keys: Sequence[SortKey]) -> Table:
    """Stable multi-key sort; earlier keys take precedence."""
    if not keys:
        return list(rows)
    return sorted(rows, key=cmp_to_key(_comparator(keys)))


def apply_limit(rows: Table, limit: int | None) -> Table:
    """Keep the first *limit* rows (``None`` keeps everything)."""
    if limit is None:
        return list(rows)
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return rows[:limit]
