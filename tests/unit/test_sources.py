"""
Unit tests -- data source providers and the fallback chain.
"""
import pytest

from datachat.copilot.sources import (
    DataSourceError,
    InlineRowsProvider,
    SampleDataProvider,
    StoredFileProvider,
    load_first_available,
)
from datachat.storage.object_store import LocalObjectStore

SCHEMA = {"date": "date", "region": "string", "units": "integer", "active": "boolean", "label": "string"}


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(tmp_path, "datasets")


def test_inline_provider():
    rows = [{"a": 1}]
    assert InlineRowsProvider(rows).load() == rows
    with pytest.raises(DataSourceError):
        InlineRowsProvider([]).load()


def test_stored_file_provider(store):
    store.upload("ds/sales.csv", b"region,sales\nN,100\nS,50\nE,10\n")
    rows = StoredFileProvider(store, "ds/sales.csv", "csv", max_rows=2).load()
    assert rows == [{"region": "N", "sales": 100}, {"region": "S", "sales": 50}]


def test_stored_file_missing_or_empty(store):
    with pytest.raises(DataSourceError, match="not found"):
        StoredFileProvider(store, "ds/missing.csv", "csv").load()
    store.upload("ds/empty.json", b"[]")
    with pytest.raises(DataSourceError, match="no data rows"):
        StoredFileProvider(store, "ds/empty.json", "json").load()


def test_sample_provider_follows_schema():
    rows = SampleDataProvider(SCHEMA, rows=10, seed_key="ds1").load()
    assert len(rows) == 10
    for row in rows:
        assert list(row) == list(SCHEMA)
        assert isinstance(row["units"], int)
        assert isinstance(row["active"], bool)
        assert row["date"][:4] in ("2024", "2025")
        assert row["label"].startswith("label ")


def test_sample_provider_is_deterministic():
    first = SampleDataProvider(SCHEMA, rows=5, seed_key="ds1").load()
    second = SampleDataProvider(SCHEMA, rows=5, seed_key="ds1").load()
    assert first == second


def test_sample_provider_needs_schema():
    with pytest.raises(DataSourceError):
        SampleDataProvider({}).load()


def test_fallback_chain_uses_first_success(store):
    providers = [
        InlineRowsProvider(None),
        StoredFileProvider(store, "ds/missing.csv", "csv"),
        SampleDataProvider(SCHEMA, rows=3),
    ]
    result = load_first_available(providers)
    assert result.ok
    assert result.source == "sample"
    assert len(result.table) == 3
    assert [e.split(":")[0] for e in result.errors] == ["inline", "storage"]


def test_fallback_chain_all_fail(store):
    result = load_first_available([InlineRowsProvider([]), StoredFileProvider(store, "x/y.csv", "csv")])
    assert not result.ok
    assert result.table == []
    assert len(result.errors) == 2
