"""
Primitive value coercion shared by the parser, filters, and aggregates.
"""
from __future__ import annotations

import math
import re
from typing import Any

_INT_RE = re.compile(r"^[+-]?\d+$")


def parse_number(text: str) -> int | float | None:
    """Parse *text* as a finite number, or return None.

    Integral text becomes an ``int`` so that sums over integer columns
    stay integers.
    """
    s = text.strip()
    if not s or "_" in s:
        return None
    if _INT_RE.match(s):
        return int(s)
    try:
        value = float(s)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Coerce a cell to a float; missing or non-numeric becomes NaN."""
    if isinstance(value, (bool, int, float)):
        return float(value)
    if isinstance(value, str):
        parsed = parse_number(value)
        return math.nan if parsed is None else float(parsed)
    return math.nan


def to_measure(value: Any) -> int | float:
    """Numeric value for aggregation; missing and non-numeric count as 0."""
    if isinstance(value, bool):
        return int(value)
    if is_numeric(value):
        return 0 if math.isnan(value) else value
    if isinstance(value, str):
        parsed = parse_number(value)
        return 0 if parsed is None else parsed
    return 0


def to_text(value: Any) -> str:
    """Text form for substring checks; a missing value reads as "undefined"."""
    return "undefined" if value is None else str(value)
