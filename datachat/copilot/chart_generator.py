"""
Chart-ready datasets.

Given the QuerySpec that was executed and its result rows, picks the axes,
reshapes the rows for the requested chart type, and returns a chart
specification that a front-end can render directly.

Reshaping per chart type:
  - bar / pie   rows summed per x value, largest first, top 20
  - line        ISO-date rows in date order, averaged per day / month / year
                beyond 50 points; other rows as-is, first 500
  - scatter     only rows where both axes are numeric, first 200
  - table       first 500 rows as-is
"""
from __future__ import annotations

import datetime
import math
from dataclasses import dataclass, field
from typing import Any

from datachat.engine.spec import QuerySpec, Row
from datachat.engine.values import is_numeric, to_measure, to_number
from datachat.core.logging import get_logger

logger = get_logger(__name__)

# ── Chart types ─────────────────────────────────────────

CHART_BAR = "bar"
CHART_LINE = "line"
CHART_PIE = "pie"
CHART_SCATTER = "scatter"
CHART_TABLE = "table"

MAX_CATEGORIES = 20
MAX_SCATTER_POINTS = 200
MAX_SERIES_POINTS = 50
MAX_TABLE_ROWS = 500


@dataclass
class ChartSpec:
    """Describes how a set of result rows should be visualised."""
    chart_type: str
    title: str
    x_column: str | None = None
    y_column: str | None = None
    color_column: str | None = None
    rows: list[dict[str, Any]] = field(default_factory=list)
    stats: dict[str, float] | None = None
    explanation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "chart_type": self.chart_type,
            "title": self.title,
            "x_column": self.x_column,
            "y_column": self.y_column,
            "color_column": self.color_column,
            "stats": self.stats,
            "explanation": self.explanation,
            "row_count": len(self.rows),
        }


# ── Axis selection ──────────────────────────────────────


def _find_x_column(columns: list[str], rows: list[Row], spec: QuerySpec) -> str | None:
    for dim in spec.dimensions:
        if dim in columns:
            return dim
    for col in columns:
        if not is_numeric(rows[0].get(col)):
            return col
    return columns[0] if columns else None


def _find_y_column(columns: list[str], rows: list[Row], spec: QuerySpec, x_col: str | None) -> str | None:
    for m in spec.measures:
        if m.output_column in columns:
            return m.output_column
    numeric = [c for c in columns if c != x_col and is_numeric(rows[0].get(c))]
    return numeric[-1] if numeric else None


def _find_color_column(spec: QuerySpec, x_col: str | None) -> str | None:
    """Second dimension, if any, splits the series."""
    for dim in spec.dimensions:
        if dim != x_col:
            return dim
    return None


# ── Reshaping ───────────────────────────────────────────


def _as_date(value: Any) -> datetime.date | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.date.fromisoformat(value[:10])
    except ValueError:
        return None


def _totals_by_category(rows: list[Row], x_col: str, y_col: str) -> list[Row]:
    totals: dict[str, int | float] = {}
    for row in rows:
        key = str(row.get(x_col) if row.get(x_col) not in (None, "") else "Unknown")
        totals[key] = totals.get(key, 0) + to_measure(row.get(y_col))
    ordered = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [{x_col: k, y_col: v} for k, v in ordered[:MAX_CATEGORIES]]


def _bucket_label(day: datetime.date, granularity: str) -> str:
    if granularity == "day":
        return day.isoformat()
    if granularity == "month":
        return f"{day.year}-{day.month:02d}"
    return str(day.year)


def _bucket_series(points: list[tuple[datetime.date, Row]], x_col: str, y_col: str) -> list[Row]:
    """Average y per day, month or year, picked from the span of the dates."""
    span = (points[-1][0] - points[0][0]).days
    if span <= 60:
        granularity = "day"
    elif span <= 730:
        granularity = "month"
    else:
        granularity = "year"

    buckets: dict[str, list[int | float]] = {}
    for day, row in points:
        buckets.setdefault(_bucket_label(day, granularity), []).append(to_measure(row.get(y_col)))
    return [
        {x_col: label, y_col: sum(values) / len(values), "count": len(values)}
        for label, values in sorted(buckets.items())
    ]


def _ordered_series(rows: list[Row], x_col: str, y_col: str) -> list[Row]:
    dates = [_as_date(row.get(x_col)) for row in rows]
    if not all(d is not None for d in dates):
        return rows[:MAX_TABLE_ROWS]
    points = sorted(zip(dates, rows), key=lambda p: p[0])
    if len(points) > MAX_SERIES_POINTS:
        return _bucket_series(points, x_col, y_col)
    return [row for _, row in points]


def _numeric_points(rows: list[Row], x_col: str, y_col: str) -> list[Row]:
    points: list[Row] = []
    for row in rows:
        x, y = to_number(row.get(x_col)), to_number(row.get(y_col))
        if not (math.isnan(x) or math.isnan(y)):
            points.append({x_col: x, y_col: y})
        if len(points) >= MAX_SCATTER_POINTS:
            break
    return points


def prepare_rows(rows: list[Row], chart_type: str, x_col: str | None, y_col: str | None) -> list[Row]:
    """Reshape *rows* for *chart_type*; never mutates the input."""
    if not rows:
        return []
    if x_col is None or y_col is None:
        return rows[:MAX_TABLE_ROWS]
    if chart_type in (CHART_BAR, CHART_PIE):
        return _totals_by_category(rows, x_col, y_col)
    if chart_type == CHART_LINE:
        return _ordered_series(rows, x_col, y_col)
    if chart_type == CHART_SCATTER:
        return _numeric_points(rows, x_col, y_col)
    return rows[:MAX_TABLE_ROWS]


def compute_stats(rows: list[Row], y_col: str | None) -> dict[str, float] | None:
    """min / max / avg / sum / count over the numeric values of *y_col*."""
    if not rows or y_col is None:
        return None
    values = [to_number(row.get(y_col)) for row in rows]
    values = [v for v in values if not math.isnan(v)]
    if not values:
        return None
    total = sum(values)
    return {
        "min": min(values),
        "max": max(values),
        "avg": total / len(values),
        "sum": total,
        "count": len(values),
    }


# ── Public API ──────────────────────────────────────────


def suggest_chart(spec: QuerySpec, rows: list[Row], columns: list[str] | None = None) -> ChartSpec:
    """Build a ``ChartSpec`` for the rows produced by *spec*.

    Parameters
    ----------
    spec : QuerySpec
        The executed query; its ``chart_type`` is honoured.
    rows : list[dict]
        Result rows.
    columns : list[str], optional
        Result columns; derived from the first row if omitted.
    """
    if not rows:
        return ChartSpec(chart_type=CHART_TABLE, title=_build_title(spec, None, None), rows=[])

    columns = columns or list(rows[0].keys())
    x_col = _find_x_column(columns, rows, spec)
    y_col = _find_y_column(columns, rows, spec, x_col)

    chart_type = spec.chart_type
    if y_col is None and chart_type != CHART_TABLE:
        logger.info("No numeric column for a %s chart -- falling back to table", chart_type)
        chart_type = CHART_TABLE

    color = _find_color_column(spec, x_col) if chart_type in (CHART_LINE, CHART_BAR) else None
    # Color splits need the raw rows, so skip the per-category totals
    if color and chart_type == CHART_BAR:
        prepared = rows[:MAX_TABLE_ROWS]
    else:
        prepared = prepare_rows(rows, chart_type, x_col, y_col)

    title = _build_title(spec, x_col, y_col)
    return ChartSpec(
        chart_type=chart_type,
        title=title,
        x_column=x_col,
        y_column=y_col,
        color_column=color,
        rows=prepared,
        stats=compute_stats(prepared, y_col),
        explanation=_build_explanation(chart_type, x_col, y_col, len(prepared)),
    )


# ── Helpers ─────────────────────────────────────────────


def _humanise(name: str) -> str:
    return name.replace("_", " ").title()


def _build_title(spec: QuerySpec, x_col: str | None, y_col: str | None) -> str:
    """Build a descriptive chart title, e.g. 'Sum Sales by Region'."""
    if spec.measures:
        head = ", ".join(_humanise(m.output_column) for m in spec.measures)
    elif y_col:
        head = _humanise(y_col)
    else:
        head = "Rows"
    dims = spec.dimensions or ([x_col] if x_col else [])
    if dims:
        return f"{head} by " + ", ".join(_humanise(d) for d in dims)
    return head


def _build_explanation(chart_type: str, x_col: str | None, y_col: str | None, n: int) -> str:
    if chart_type == CHART_TABLE or not (x_col and y_col):
        return f"Showing {n} rows as a table."
    return f"{chart_type.title()} chart of {_humanise(y_col)} across {n} values of {_humanise(x_col)}."
