"""
Integration tests -- seeded demo data through upload, HTTP ask, history and delete.

Runs against the temporary SQLite catalog and storage directory set up in
conftest, so no external services are needed.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from datachat.api.main import app
from datachat.engine.parser import parse_csv
from pipelines.seed.seed_data import NUM_SALES, REGIONS, gen_sales_csv, gen_sessions_json

client = TestClient(app)


@pytest.fixture(scope="module")
def sales_csv():
    return gen_sales_csv()


@pytest.fixture(scope="module")
def sales_id(sales_csv):
    resp = client.post("/datasets", files={"file": ("sales.csv", sales_csv.encode(), "text/csv")})
    assert resp.status_code == 201
    dataset_id = resp.json()["id"]
    yield dataset_id
    client.delete(f"/datasets/{dataset_id}")


def test_seeded_upload_metadata(sales_id):
    data = client.get(f"/datasets/{sales_id}").json()
    assert data["row_count"] == NUM_SALES
    assert data["column_schema"] == {
        "date": "date", "region": "string", "country": "string", "category": "string",
        "product": "string", "units": "number", "sales": "number",
    }


def test_total_sales_by_region(sales_id, sales_csv):
    data = client.post("/ask", json={"dataset_id": sales_id, "question": "total sales by region"}).json()
    assert data["success"] is True
    assert {r["region"] for r in data["data"]} == set(REGIONS)

    expected = sum(row["sales"] for row in parse_csv(sales_csv))
    assert sum(r["sum_sales"] for r in data["data"]) == pytest.approx(expected)


def test_count_conservation(sales_id):
    data = client.post("/query", json={
        "dataset_id": sales_id,
        "spec": {"dimensions": ["region", "category"], "measures": [{"field": "units", "aggregation": "count"}]},
    }).json()
    assert sum(r["count_units"] for r in data["data"]) == NUM_SALES
    assert data["chart"]["color_column"] == "category"


def test_top_categories(sales_id):
    data = client.post("/ask", json={"dataset_id": sales_id, "question": "total sales by category, top 3"}).json()
    values = [r["sum_sales"] for r in data["data"]]
    assert len(values) == 3
    assert values == sorted(values, reverse=True)


def test_filtered_query(sales_id):
    data = client.post("/query", json={
        "dataset_id": sales_id,
        "spec": {
            "filters": [{"field": "region", "operator": "eq", "value": "North"},
                        {"field": "units", "operator": "gte", "value": 10}],
            "limit": 5,
        },
    }).json()
    assert 0 < len(data["data"]) <= 5
    assert all(r["region"] == "North" and r["units"] >= 10 for r in data["data"])


def test_history_records_each_query(sales_id):
    entries = client.get("/history", params={"dataset_id": sales_id}).json()["entries"]
    assert len(entries) >= 4
    assert all(e["dataset_id"] == sales_id for e in entries)


def test_json_dataset_roundtrip():
    resp = client.post("/datasets", files={"file": ("sessions.json", gen_sessions_json().encode(), "application/json")})
    assert resp.status_code == 201
    dataset_id = resp.json()["id"]
    assert resp.json()["column_schema"]["converted"] == "boolean"

    data = client.post("/ask", json={"dataset_id": dataset_id, "question": "average pages per device"}).json()
    assert {r["device"] for r in data["data"]} <= {"mobile", "desktop", "tablet"}
    assert "avg_pages" in data["columns"]

    assert client.delete(f"/datasets/{dataset_id}").status_code == 200
    assert client.post("/ask", json={"dataset_id": dataset_id, "question": "average pages per device"}).status_code == 404
