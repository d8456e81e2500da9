"""
QuerySpec -- the structured description of one query over a table,
and QueryResult, what the pipeline hands back.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

Row = dict[str, Any]
Table = list[Row]
ColumnSchema = dict[str, str]

Aggregation = Literal["sum", "avg", "min", "max", "count"]
Operator = Literal["eq", "neq", "gt", "lt", "gte", "lte", "contains", "not_contains"]
Direction = Literal["asc", "desc"]

AGGREGATIONS: tuple[str, ...] = ("sum", "avg", "min", "max", "count")
OPERATORS: tuple[str, ...] = ("eq", "neq", "gt", "lt", "gte", "lte", "contains", "not_contains")
CHART_TYPES: tuple[str, ...] = ("bar", "line", "pie", "scatter", "table")

NUMERIC_TYPES = {"number", "integer"}
CATEGORICAL_TYPES = {"string", "date"}


class Measure(BaseModel):
    field: str
    aggregation: Aggregation = "sum"

    @property
    def output_column(self) -> str:
        return f"{self.aggregation}_{self.field}"


class Filter(BaseModel):
    field: str
    operator: Operator = "eq"
    value: Any = None


class SortKey(BaseModel):
    field: str
    direction: Direction = "asc"


class QuerySpec(BaseModel):
    """Parsed representation of a question over one dataset."""

    dimensions: list[str] = Field(default_factory=list, description="Group-by fields")
    measures: list[Measure] = Field(default_factory=list, description="(field, aggregation) pairs")
    filters: list[Filter] = Field(default_factory=list, description="ANDed predicates")
    sort: list[SortKey] = Field(default_factory=list, description="Ordered sort keys")
    limit: int | None = Field(None, ge=0, description="Maximum rows to return")
    chart_type: str = Field("bar", description="bar | line | pie | scatter | table")


class QueryResult(BaseModel):
    data: list[Row] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
