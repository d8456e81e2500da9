"""
Copilot service -- orchestrates load -> plan -> run -> chart -> log.

Datasets are uploaded once (file into the object store, metadata into the
catalog).  Every query then loads the table through the data-source
fallback chain, runs it through the engine pipeline, builds a chart-ready
dataset, and records the outcome in the query history.

Structured queries go through `run()`, natural-language questions through
`ask()`; both return a CopilotResult and never raise for query-level
failures (those come back in ``result.error``).
"""
from __future__ import annotations

import copy
import time
import uuid
from pathlib import PurePath

from datachat.engine.parser import detect_format, infer_schema, parse_table, SUPPORTED_FORMATS
from datachat.engine.pipeline import run_query
from datachat.engine.spec import ColumnSchema, QueryResult, QuerySpec, Table
from datachat.copilot.cache import get_cache
from datachat.copilot.chart_generator import ChartSpec, suggest_chart
from datachat.copilot.interpreter import plan
from datachat.copilot.sources import (
    DataSourceProvider,
    InlineRowsProvider,
    SampleDataProvider,
    SourceResult,
    StoredFileProvider,
    load_first_available,
)
from datachat.db import dataset_store
from datachat.db.dataset_store import Dataset, ensure_dataset_table
from datachat.db.query_log import delete_queries, ensure_log_table, log_query
from datachat.storage.object_store import get_object_store
from datachat.core.config import get_settings
from datachat.core.logging import get_logger

logger = get_logger(__name__)

# Ensure the catalog and history tables exist at import time (idempotent)
try:
    ensure_dataset_table()
    ensure_log_table()
except Exception:
    logger.warning("Could not ensure dataset/query tables (DB may not be available)")


class DatasetError(Exception):
    """The uploaded file cannot become a dataset."""


class DatasetNotFound(DatasetError):
    pass


class CopilotResult:
    def __init__(
        self,
        dataset_id: str,
        spec: QuerySpec,
        result: QueryResult,
        question: str | None = None,
        mode: str = "structured",
        chart: ChartSpec | None = None,
        source: str | None = None,
        source_errors: list[str] | None = None,
        latency_ms: int = 0,
        cached: bool = False,
    ):
        self.dataset_id = dataset_id
        self.spec = spec
        self.result = result
        self.question = question
        self.mode = mode
        self.chart = chart
        self.source = source
        self.source_errors = source_errors or []
        self.latency_ms = latency_ms
        self.cached = cached

    @property
    def success(self) -> bool:
        return self.result.error is None


# ── Datasets ────────────────────────────────────────────


def _dataset_name(file_name: str) -> str:
    """'monthly_sales.csv' -> 'Monthly Sales'."""
    return PurePath(file_name).stem.replace("_", " ").title()


def upload_dataset(file_name: str, content: bytes, name: str | None = None) -> Dataset:
    """Validate, store, and catalogue an uploaded CSV / JSON file."""
    file_format = detect_format(file_name)
    if file_format is None:
        raise DatasetError(
            f"Unsupported file type '{file_name}'. Allowed: {', '.join(SUPPORTED_FORMATS)}"
        )

    rows = parse_table(content.decode("utf-8-sig", errors="replace"), file_format)
    if not rows:
        raise DatasetError(f"File '{file_name}' contains no data rows")
    schema = infer_schema(rows)

    dataset_id = uuid.uuid4().hex
    safe_name = PurePath(file_name).name.replace(" ", "_")
    storage_path = f"{dataset_id}/{safe_name}"

    store = get_object_store()
    store.upload(storage_path, content)
    try:
        dataset = dataset_store.create_dataset(
            dataset_id=dataset_id,
            name=name or _dataset_name(file_name),
            file_name=safe_name,
            file_format=file_format,
            storage_path=storage_path,
            column_schema=schema,
            row_count=len(rows),
        )
    except Exception:
        logger.exception("Catalog insert failed -- removing stored file")
        store.delete(storage_path)
        raise
    return dataset


def require_dataset(dataset_id: str) -> Dataset:
    dataset = dataset_store.get_dataset(dataset_id)
    if dataset is None:
        raise DatasetNotFound(f"Dataset '{dataset_id}' not found")
    return dataset


def list_datasets() -> list[Dataset]:
    return dataset_store.list_datasets()


def preview_dataset(dataset_id: str, limit: int | None = None) -> QueryResult:
    """First *limit* rows of a dataset, straight from storage."""
    dataset = require_dataset(dataset_id)
    limit = limit or get_settings().preview_row_limit
    source = load_first_available([
        StoredFileProvider(get_object_store(), dataset.storage_path, dataset.file_format, max_rows=limit),
    ])
    if not source.ok:
        return QueryResult(error="; ".join(source.errors))
    return run_query(source.table, QuerySpec())


def delete_dataset(dataset_id: str) -> None:
    """Remove the file, the catalog entry, history, and cached results."""
    dataset = require_dataset(dataset_id)
    get_object_store().delete(dataset.storage_path)
    removed_logs = delete_queries(dataset_id)
    dataset_store.delete_dataset(dataset_id)
    removed_cache = get_cache().invalidate(dataset_id)
    logger.info("Deleted dataset %s (%d history rows, %d cached results)",
                dataset_id, removed_logs, removed_cache)


def load_dataset_table(dataset: Dataset, inline_rows: Table | None = None) -> SourceResult:
    """Walk the provider chain: inline rows, stored file, then sample data."""
    settings = get_settings()
    providers: list[DataSourceProvider] = []
    if inline_rows:
        providers.append(InlineRowsProvider(inline_rows))
    providers.append(
        StoredFileProvider(get_object_store(), dataset.storage_path, dataset.file_format,
                           max_rows=settings.max_table_rows)
    )
    if settings.sample_data_fallback:
        providers.append(
            SampleDataProvider(dataset.column_schema, rows=settings.sample_data_rows, seed_key=dataset.id)
        )
    return load_first_available(providers)


# ── Queries ─────────────────────────────────────────────


def _execute(
    dataset: Dataset,
    spec: QuerySpec,
    source: SourceResult,
    t0: float,
    question: str | None = None,
    mode: str = "structured",
) -> CopilotResult:
    if source.ok:
        result = run_query(source.table, spec)
    else:
        result = QueryResult(error=f"No data available for dataset '{dataset.id}'")

    chart: ChartSpec | None = None
    if result.ok:
        try:
            chart = suggest_chart(spec, result.data, result.columns)
        except Exception:
            logger.warning("Chart generation failed -- continuing without chart")

    latency = int((time.perf_counter() - t0) * 1000)

    log_query(
        dataset_id=dataset.id,
        question=question,
        mode=mode,
        spec=spec.model_dump(),
        row_count=len(result.data),
        error=result.error,
        source=source.source,
        latency_ms=latency,
    )

    return CopilotResult(
        dataset_id=dataset.id,
        spec=spec,
        result=result,
        question=question,
        mode=mode,
        chart=chart,
        source=source.source,
        source_errors=source.errors,
        latency_ms=latency,
    )


def _from_cache(dataset_id: str, key: object, t0: float) -> CopilotResult | None:
    cached = get_cache().get(dataset_id, key)
    if cached is None:
        return None
    hit = copy.copy(cached)
    hit.cached = True
    hit.latency_ms = int((time.perf_counter() - t0) * 1000)
    return hit


def _store_in_cache(dataset_id: str, key: object, result: CopilotResult) -> None:
    if result.success and result.result.data and result.source == "storage":
        get_cache().put(dataset_id, key, result)


def run(dataset_id: str, spec: QuerySpec, inline_rows: Table | None = None) -> CopilotResult:
    """Execute a structured QuerySpec against a dataset."""
    t0 = time.perf_counter()
    logger.info("Copilot.run | dataset=%s | spec=%s", dataset_id, spec.model_dump_json(indent=None))
    dataset = require_dataset(dataset_id)

    key = {"spec": spec.model_dump()}
    if not inline_rows:
        hit = _from_cache(dataset_id, key, t0)
        if hit is not None:
            logger.info("Cache HIT for dataset=%s", dataset_id)
            return hit

    source = load_dataset_table(dataset, inline_rows)
    result = _execute(dataset, spec, source, t0)
    _store_in_cache(dataset_id, key, result)
    return result


def ask(
    dataset_id: str,
    question: str,
    mode: str = "mock",
    inline_rows: Table | None = None,
) -> CopilotResult:
    """End-to-end: question -> QuerySpec -> result rows -> chart.

    Parameters
    ----------
    dataset_id : str
        Dataset to query.
    question : str
        Natural-language question.
    mode : str
        Interpreter mode -- "mock" (keyword), "openai", or "anthropic".
    inline_rows : list[dict], optional
        Rows supplied by the caller; used before the stored file.
    """
    t0 = time.perf_counter()
    logger.info("Copilot.ask | dataset=%s | question=%s | mode=%s", dataset_id, question, mode)
    dataset = require_dataset(dataset_id)

    key = f"{mode}:{question}"
    if not inline_rows:
        hit = _from_cache(dataset_id, key, t0)
        if hit is not None:
            logger.info("Cache HIT for question=%s", question[:60])
            return hit

    source = load_dataset_table(dataset, inline_rows)
    schema: ColumnSchema = dataset.column_schema or infer_schema(source.table)
    spec = plan(question, schema, mode=mode)

    result = _execute(dataset, spec, source, t0, question=question, mode=mode)
    _store_in_cache(dataset_id, key, result)
    return result


def plan_question(dataset_id: str, question: str, mode: str = "mock") -> QuerySpec:
    """Dry-run: question -> QuerySpec without touching the data."""
    dataset = require_dataset(dataset_id)
    return plan(question, dataset.column_schema, mode=mode)
