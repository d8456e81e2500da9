"""
Unit tests -- interpreter: keyword extraction and LLM response parsing.
"""
import json

import pytest

from datachat.copilot import interpreter
from datachat.copilot.interpreter import (
    KeywordInterpreter,
    LLMInterpreter,
    _parse_llm_response,
    get_interpreter,
    plan,
)
from datachat.engine.spec import Measure, QuerySpec

SCHEMA = {"date": "date", "region": "string", "category": "string", "units": "number", "sales": "number"}


def _outputs(spec: QuerySpec) -> list[str]:
    return [m.output_column for m in spec.measures]


def test_average_sales_by_region():
    spec = plan("average sales by region", {"sales": "number", "region": "string"})
    assert spec.dimensions == ["region"]
    assert spec.measures == [Measure(field="sales", aggregation="avg")]
    assert spec.chart_type == "bar"


@pytest.mark.parametrize("question,aggregation", [
    ("total sales by region", "sum"),
    ("mean sales per region", "avg"),
    ("minimum sales by region", "min"),
    ("highest sales by region", "max"),
    ("sales by region", "sum"),
])
def test_aggregation_keywords(question, aggregation):
    spec = plan(question, SCHEMA)
    assert spec.measures == [Measure(field="sales", aggregation=aggregation)]


def test_multiple_dimension_phrases():
    spec = plan("sales grouped by region and split by category", SCHEMA)
    assert spec.dimensions == ["region", "category"]


def test_fallback_dimension_from_plain_mention():
    spec = plan("sales in each region", SCHEMA)
    assert spec.dimensions == ["region"]


def test_count_when_no_numeric_column_named():
    spec = plan("how many orders by region", SCHEMA)
    assert _outputs(spec) == ["count_date"]


def test_default_sum_of_first_numeric():
    spec = plan("show me everything by region", SCHEMA)
    assert _outputs(spec) == ["sum_units"]


def test_no_numeric_columns_gives_no_measures():
    spec = plan("list by name", {"name": "string"})
    assert spec.dimensions == ["name"]
    assert spec.measures == []


@pytest.mark.parametrize("question,chart", [
    ("sales trend by date", "line"),
    ("sales over time by date", "line"),
    ("proportion of sales by region", "pie"),
    ("correlation of units and sales", "scatter"),
    ("sales by region as bars", "bar"),
    ("sales by region", "bar"),
    ("bar chart of the sales trend by date", "bar"),
])
def test_chart_type(question, chart):
    assert plan(question, SCHEMA).chart_type == chart


def test_top_n():
    spec = plan("total sales by category, top 3", SCHEMA)
    assert spec.limit == 3
    assert [(s.field, s.direction) for s in spec.sort] == [("sum_sales", "desc")]


def test_bottom_n():
    spec = plan("lowest sales by region, bottom 2", SCHEMA)
    assert spec.limit == 2
    assert [(s.field, s.direction) for s in spec.sort] == [("min_sales", "asc")]


def test_ranking_ignored_without_dimensions():
    spec = plan("top 5 sales", SCHEMA)
    assert spec.dimensions == []
    assert spec.limit is None
    assert spec.sort == []


def test_get_interpreter():
    assert isinstance(get_interpreter("mock"), KeywordInterpreter)
    assert isinstance(get_interpreter("openai"), LLMInterpreter)


# ── LLM response parsing ────────────────────────────────

def test_parse_valid_llm_json():
    payload = {
        "dimensions": ["region"],
        "measures": [{"field": "sales", "aggregation": "max"}],
        "filters": [{"field": "units", "operator": "gt", "value": 2}],
        "sort": [{"field": "max_sales", "direction": "desc"}],
        "limit": 5,
        "chart_type": "pie",
    }
    spec = _parse_llm_response(json.dumps(payload), "q", SCHEMA)
    assert spec.dimensions == ["region"]
    assert _outputs(spec) == ["max_sales"]
    assert spec.filters[0].value == 2
    assert spec.limit == 5
    assert spec.chart_type == "pie"


def test_parse_strips_code_fences():
    text = '```json\n{"dimensions": ["region"], "measures": [{"field": "sales"}]}\n```'
    spec = _parse_llm_response(text, "q", SCHEMA)
    assert spec.dimensions == ["region"]
    assert _outputs(spec) == ["sum_sales"]


def test_parse_bad_json_falls_back():
    spec = _parse_llm_response("not json", "average sales by region", SCHEMA)
    assert _outputs(spec) == ["avg_sales"]


def test_parse_invalid_aggregation_falls_back():
    text = json.dumps({"measures": [{"field": "sales", "aggregation": "median"}]})
    spec = _parse_llm_response(text, "total units by category", SCHEMA)
    assert spec.dimensions == ["category"]
    assert _outputs(spec) == ["sum_units"]


def test_parse_unknown_column_falls_back():
    text = json.dumps({"dimensions": ["continent"], "measures": [{"field": "sales"}]})
    spec = _parse_llm_response(text, "sales by region", SCHEMA)
    assert spec.dimensions == ["region"]


def test_parse_unknown_chart_type_reset():
    text = json.dumps({"dimensions": ["region"], "chart_type": "radar"})
    assert _parse_llm_response(text, "q", SCHEMA).chart_type == "bar"


def test_llm_interpreter_falls_back_without_key():
    spec = LLMInterpreter("openai").interpret("average sales by region", SCHEMA)
    assert spec.dimensions == ["region"]
    assert _outputs(spec) == ["avg_sales"]


def test_llm_interpreter_uses_provider_answer(monkeypatch):
    answer = json.dumps({"dimensions": ["category"], "measures": [{"field": "units", "aggregation": "count"}]})
    monkeypatch.setattr("datachat.copilot.llm_client.call_llm", lambda prompt, provider=None: answer)
    spec = interpreter.plan("anything", SCHEMA, mode="anthropic")
    assert spec.dimensions == ["category"]
    assert _outputs(spec) == ["count_units"]


@pytest.mark.parametrize("question", ["show counts by region", "count of orders by region", "recount per region"])
def test_count_keyword_anywhere(question):
    spec = plan(question, {"region": "string", "sales": "number", "orders_total": "number"})
    assert spec.dimensions == ["region"]
    assert _outputs(spec) == ["count_region"]
