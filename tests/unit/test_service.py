"""
Unit tests -- copilot service against a temporary SQLite catalog and storage dir.
"""
import pytest

from datachat.copilot import service
from datachat.copilot.service import CopilotResult, DatasetError, DatasetNotFound
from datachat.core.config import get_settings
from datachat.db.query_log import list_queries
from datachat.engine.spec import Measure, QuerySpec, SortKey
from datachat.storage.object_store import get_object_store

SALES_CSV = b"month,sales,region\nJan,100,N\nFeb,200,N\nMar,50,S\n"


@pytest.fixture
def dataset():
    ds = service.upload_dataset("monthly_sales.csv", SALES_CSV)
    yield ds
    try:
        service.delete_dataset(ds.id)
    except DatasetNotFound:
        pass


def _by_region(aggregation="sum"):
    return QuerySpec(dimensions=["region"], measures=[Measure(field="sales", aggregation=aggregation)])


# ── Datasets ────────────────────────────────────────────

def test_upload_records_metadata(dataset):
    assert dataset.name == "Monthly Sales"
    assert dataset.file_format == "csv"
    assert dataset.row_count == 3
    assert dataset.column_schema == {"month": "string", "sales": "number", "region": "string"}
    assert dataset.storage_path == f"{dataset.id}/monthly_sales.csv"
    assert get_object_store().exists(dataset.storage_path)
    assert service.require_dataset(dataset.id).column_schema == dataset.column_schema


def test_upload_json_with_custom_name():
    ds = service.upload_dataset("events.json", b'[{"kind": "click", "n": 2}]', name="Events")
    try:
        assert ds.name == "Events"
        assert ds.column_schema == {"kind": "string", "n": "number"}
        assert ds.id in [d.id for d in service.list_datasets()]
    finally:
        service.delete_dataset(ds.id)


@pytest.mark.parametrize("file_name,content", [
    ("notes.txt", b"a,b\n1,2\n"),
    ("empty.csv", b"a,b\n"),
    ("broken.json", b"{oops"),
])
def test_upload_rejects_bad_files(file_name, content):
    with pytest.raises(DatasetError):
        service.upload_dataset(file_name, content)


def test_unknown_dataset():
    with pytest.raises(DatasetNotFound):
        service.require_dataset("does-not-exist")
    with pytest.raises(DatasetNotFound):
        service.run("does-not-exist", QuerySpec())


def test_preview_limit(dataset):
    result = service.preview_dataset(dataset.id, limit=2)
    assert [r["month"] for r in result.data] == ["Jan", "Feb"]
    assert result.columns == ["month", "sales", "region"]


def test_delete_removes_everything(dataset):
    service.run(dataset.id, _by_region())
    service.delete_dataset(dataset.id)
    assert not get_object_store().exists(dataset.storage_path)
    assert list_queries(dataset_id=dataset.id) == []
    with pytest.raises(DatasetNotFound):
        service.require_dataset(dataset.id)


# ── Queries ─────────────────────────────────────────────

def test_run_structured_query(dataset):
    result = service.run(dataset.id, _by_region())
    assert isinstance(result, CopilotResult)
    assert result.success
    assert result.source == "storage"
    assert result.result.data == [{"region": "N", "sum_sales": 300}, {"region": "S", "sum_sales": 50}]
    assert result.chart.x_column == "region"
    assert result.cached is False


def test_run_is_cached(dataset):
    first = service.run(dataset.id, _by_region("max"))
    second = service.run(dataset.id, _by_region("max"))
    assert first.cached is False
    assert second.cached is True
    assert second.result.data == first.result.data


def test_ask_question(dataset):
    result = service.ask(dataset.id, "average sales by region")
    assert result.success
    assert result.mode == "mock"
    assert result.spec.dimensions == ["region"]
    assert result.result.data == [{"region": "N", "avg_sales": 150}, {"region": "S", "avg_sales": 50}]
    assert result.chart.title == "Avg Sales by Region"

    entries = list_queries(dataset_id=dataset.id)
    assert entries[0]["question"] == "average sales by region"
    assert entries[0]["success"] is True
    assert entries[0]["query_spec"]["dimensions"] == ["region"]


def test_ask_top_n(dataset):
    result = service.ask(dataset.id, "total sales by month, top 2")
    assert [r["month"] for r in result.result.data] == ["Feb", "Jan"]


def test_inline_rows_take_precedence(dataset):
    rows = [{"month": "Apr", "sales": 7, "region": "W"}]
    result = service.run(dataset.id, _by_region(), inline_rows=rows)
    assert result.source == "inline"
    assert result.result.data == [{"region": "W", "sum_sales": 7}]
    again = service.run(dataset.id, _by_region(), inline_rows=rows)
    assert again.cached is False


def test_missing_file_without_fallback(dataset):
    get_object_store().delete(dataset.storage_path)
    result = service.run(dataset.id, QuerySpec(sort=[SortKey(field="sales")]))
    assert not result.success
    assert result.source is None
    assert "No data available" in result.result.error
    assert result.source_errors


def test_missing_file_with_sample_fallback(dataset, monkeypatch):
    monkeypatch.setattr(get_settings(), "sample_data_fallback", True)
    get_object_store().delete(dataset.storage_path)
    result = service.run(dataset.id, _by_region("count"))
    assert result.success
    assert result.source == "sample"
    assert sum(r["count_sales"] for r in result.result.data) == get_settings().sample_data_rows


def test_plan_question(dataset):
    spec = service.plan_question(dataset.id, "max sales per month as a line chart")
    assert spec.dimensions == ["month"]
    assert spec.measures == [Measure(field="sales", aggregation="max")]
    assert spec.chart_type == "line"


def test_byte_order_mark_upload_queries_first_column():
    ds = service.upload_dataset("excel_export.csv", b"\xef\xbb\xbfregion,sales\nN,100\nN,200\nS,50\n")
    try:
        assert ds.column_schema == {"region": "string", "sales": "number"}
        result = service.run(ds.id, _by_region())
        assert result.result.data == [{"region": "N", "sum_sales": 300}, {"region": "S", "sum_sales": 50}]
        preview = service.preview_dataset(ds.id)
        assert preview.columns == ["region", "sales"]
    finally:
        service.delete_dataset(ds.id)
