"""
Interpreter -- converts a natural-language question into a QuerySpec.

Two strategies behind the same ``QueryInterpreter`` interface:
  mock     → deterministic keyword matching against the column schema
  openai / anthropic → LLM-backed parsing via llm_client, falling back to
             the keyword interpreter when the model answer is unusable
"""
from __future__ import annotations

import json
import re
from typing import Any, Protocol

from pydantic import ValidationError

from datachat.engine.spec import (
    CATEGORICAL_TYPES,
    CHART_TYPES,
    NUMERIC_TYPES,
    ColumnSchema,
    Measure,
    QuerySpec,
    SortKey,
)
from datachat.core.logging import get_logger

logger = get_logger(__name__)

# ── Keyword maps ─────────────────────────────────────────

_DIMENSION_PHRASES: list[str] = ["by", "group by", "grouped by", "broken down by", "split by", "per"]

_AGGREGATION_KEYWORDS: dict[str, list[str]] = {
    "sum":   ["sum", "total", "add"],
    "avg":   ["average", "mean", "avg"],
    "min":   ["min", "minimum", "lowest"],
    "max":   ["max", "maximum", "highest"],
    "count": ["count", "number of", "how many"],
}

_CHART_KEYWORDS: dict[str, list[str]] = {
    "bar":     ["bar chart", "bar graph", "bars"],
    "line":    ["line chart", "line graph", "trend", "over time"],
    "pie":     ["pie chart", "pie graph", "percentage", "proportion"],
    "scatter": ["scatter plot", "scatter chart", "correlation"],
}

_TOP_RE = re.compile(r"\b(top|limit|first)\s+(\d+)\b")
_BOTTOM_RE = re.compile(r"\bbottom\s+(\d+)\b")


class QueryInterpreter(Protocol):
    """Strategy that turns a question + column schema into a QuerySpec."""

    def interpret(self, question: str, schema: ColumnSchema) -> QuerySpec:
        ...


# ── Keyword interpreter ──────────────────────────────────

def _detect_dimensions(q: str, schema: ColumnSchema) -> list[str]:
    dims: list[str] = []
    for column in schema:
        col = column.lower()
        if any(f"{phrase} {col}" in q for phrase in _DIMENSION_PHRASES):
            dims.append(column)
    if dims:
        return dims

    # No phrase-based dimension: first categorical column named anywhere
    for column, col_type in schema.items():
        if col_type in CATEGORICAL_TYPES and column.lower() in q:
            return [column]
    return []


def _detect_aggregation(q: str, column: str) -> str | None:
    col = column.lower()
    for aggregation, keywords in _AGGREGATION_KEYWORDS.items():
        for kw in keywords:
            if f"{kw} {col}" in q:
                return aggregation
    return None


def _detect_measures(q: str, schema: ColumnSchema) -> list[Measure]:
    measures: list[Measure] = []
    for column, col_type in schema.items():
        if col_type not in NUMERIC_TYPES:
            continue
        aggregation = _detect_aggregation(q, column)
        if aggregation is None and column.lower() in q:
            aggregation = "sum"
        if aggregation:
            measures.append(Measure(field=column, aggregation=aggregation))
    if measures:
        return measures

    columns = list(schema)
    if columns and ("count" in q or "how many" in q):
        return [Measure(field=columns[0], aggregation="count")]

    for column, col_type in schema.items():
        if col_type in NUMERIC_TYPES:
            return [Measure(field=column, aggregation="sum")]
    return []


def _detect_chart_type(q: str) -> str:
    for chart_type, keywords in _CHART_KEYWORDS.items():
        if any(kw in q for kw in keywords):
            return chart_type
    return "bar"


def _detect_ranking(q: str, measures: list[Measure]) -> tuple[list[SortKey], int | None]:
    """``top 5`` / ``bottom 3`` → sort on the first measure plus a limit."""
    target = measures[0].output_column if measures else None
    m = _BOTTOM_RE.search(q)
    if m:
        sort = [SortKey(field=target, direction="asc")] if target else []
        return sort, int(m.group(1))
    m = _TOP_RE.search(q)
    if m:
        sort = [SortKey(field=target, direction="desc")] if target else []
        return sort, int(m.group(1))
    return [], None


class KeywordInterpreter:
    """Deterministic keyword-based NL→QuerySpec parser.

    A rule-based approximation: ambiguous phrasing degrades to defaults
    (sum of the first numeric column, bar chart) instead of failing.
    """

    name = "mock"

    def interpret(self, question: str, schema: ColumnSchema) -> QuerySpec:
        q = question.lower().strip()
        dims = _detect_dimensions(q, schema)
        measures = _detect_measures(q, schema)
        sort, limit = _detect_ranking(q, measures) if dims else ([], None)
        return QuerySpec(
            dimensions=dims,
            measures=measures,
            sort=sort,
            limit=limit,
            chart_type=_detect_chart_type(q),
        )


# ── LLM interpreter ─────────────────────────────────────

_LLM_SYSTEM_PROMPT = """\
You are a query planner for a tabular dataset. Given a natural-language question, \
extract a JSON object with these exact fields:

  dimensions : list[string] -- zero or more column names to group by
  measures   : list[{{"field": string, "aggregation": "sum|avg|min|max|count"}}]
  filters    : list[{{"field": string, "operator": "eq|neq|gt|lt|gte|lte|contains|not_contains", "value": any}}]
  sort       : list[{{"field": string, "direction": "asc|desc"}}]
  limit      : int | null
  chart_type : string -- one of: {chart_types}

Available columns and their types: {schema}

Aggregated columns are named "<aggregation>_<field>", e.g. "sum_sales"; sort on those names.
Respond ONLY with valid JSON. No markdown, no explanation."""


def _build_llm_prompt(question: str, schema: ColumnSchema) -> str:
    system = _LLM_SYSTEM_PROMPT.format(
        chart_types=", ".join(CHART_TYPES),
        schema=json.dumps(schema),
    )
    return f"{system}\n\nQuestion: {question}\n\nJSON:"


def _unknown_fields(spec: QuerySpec, schema: ColumnSchema) -> list[str]:
    known = set(schema) | {m.output_column for m in spec.measures}
    fields = (
        list(spec.dimensions)
        + [m.field for m in spec.measures]
        + [f.field for f in spec.filters]
    )
    unknown = [f for f in fields if f not in schema]
    unknown += [s.field for s in spec.sort if s.field not in known]
    return unknown


def _parse_llm_response(text: str, question: str, schema: ColumnSchema) -> QuerySpec:
    """Parse the LLM's JSON response into a QuerySpec, with keyword fallback."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    fallback = KeywordInterpreter()
    try:
        data: dict[str, Any] = json.loads(text)
        spec = QuerySpec.model_validate(data)
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        logger.warning("LLM returned an unusable plan, falling back to keywords: %s", exc)
        return fallback.interpret(question, schema)

    unknown = _unknown_fields(spec, schema)
    if unknown:
        logger.warning("LLM plan references unknown columns %s, falling back to keywords", unknown)
        return fallback.interpret(question, schema)

    if spec.chart_type not in CHART_TYPES:
        spec.chart_type = "bar"
    return spec


class LLMInterpreter:
    """Ask the configured LLM provider for a plan."""

    def __init__(self, provider: str):
        self.name = provider

    def interpret(self, question: str, schema: ColumnSchema) -> QuerySpec:
        from datachat.copilot.llm_client import call_llm

        prompt = _build_llm_prompt(question, schema)
        try:
            response = call_llm(prompt, provider=self.name)
        except RuntimeError as exc:
            logger.warning("LLM call failed, falling back to keywords: %s", exc)
            return KeywordInterpreter().interpret(question, schema)
        return _parse_llm_response(response, question, schema)


# ── Public API ───────────────────────────────────────────

def get_interpreter(mode: str = "mock") -> QueryInterpreter:
    if mode == "mock":
        return KeywordInterpreter()
    return LLMInterpreter(mode)


def plan(question: str, schema: ColumnSchema, mode: str = "mock") -> QuerySpec:
    """Parse *question* into a QuerySpec for a table with *schema*.

    Modes
    -----
    mock               -- rule-based keyword extraction (no API key needed)
    openai / anthropic -- LLM-backed parsing via llm_client
    """
    spec = get_interpreter(mode).interpret(question, schema)
    logger.info("Interpreter[%s] -> %s", mode, spec.model_dump_json(indent=None))
    return spec
