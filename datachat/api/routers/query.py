"""POST /query, POST /ask -- run structured or natural-language queries; history and cache admin."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from datachat.copilot import service
from datachat.copilot.cache import get_cache
from datachat.copilot.service import CopilotResult, DatasetNotFound
from datachat.db.query_log import list_queries
from datachat.engine.spec import QuerySpec
from datachat.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

Mode = Literal["mock", "openai", "anthropic"]


class StructuredQueryRequest(BaseModel):
    dataset_id: str
    spec: QuerySpec = Field(default_factory=QuerySpec)
    rows: list[dict[str, Any]] | None = Field(None, description="Optional rows to query instead of the stored file")


class AskRequest(BaseModel):
    dataset_id: str
    question: str = Field(..., min_length=3, max_length=500, description="Natural-language question")
    mode: Mode = Field("mock", description="mock | openai | anthropic")
    rows: list[dict[str, Any]] | None = Field(None, description="Optional rows to query instead of the stored file")


class ChartResponse(BaseModel):
    chart_type: str
    title: str
    x_column: str | None = None
    y_column: str | None = None
    color_column: str | None = None
    data: list[dict[str, Any]]
    stats: dict[str, float] | None = None
    explanation: str = ""


class QueryResponse(BaseModel):
    dataset_id: str
    question: str | None
    mode: str
    spec: QuerySpec
    data: list[dict[str, Any]]
    columns: list[str]
    error: str | None
    chart: ChartResponse | None
    source: str | None
    source_errors: list[str]
    success: bool
    latency_ms: int
    cached: bool


class PlanResponse(BaseModel):
    dataset_id: str
    question: str
    spec: QuerySpec


class HistoryResponse(BaseModel):
    entries: list[dict[str, Any]]


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    hit_rate: float


def _to_response(result: CopilotResult) -> QueryResponse:
    chart_resp = None
    if result.chart is not None:
        chart_resp = ChartResponse(
            chart_type=result.chart.chart_type,
            title=result.chart.title,
            x_column=result.chart.x_column,
            y_column=result.chart.y_column,
            color_column=result.chart.color_column,
            data=result.chart.rows,
            stats=result.chart.stats,
            explanation=result.chart.explanation,
        )
    return QueryResponse(
        dataset_id=result.dataset_id,
        question=result.question,
        mode=result.mode,
        spec=result.spec,
        data=result.result.data,
        columns=result.result.columns,
        error=result.result.error,
        chart=chart_resp,
        source=result.source,
        source_errors=result.source_errors,
        success=result.success,
        latency_ms=result.latency_ms,
        cached=result.cached,
    )


@router.post("/query", response_model=QueryResponse)
def query_endpoint(req: StructuredQueryRequest):
    """Structured pipeline: filters -> group/aggregate -> sort -> limit."""
    try:
        result = service.run(req.dataset_id, req.spec, inline_rows=req.rows)
    except DatasetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except Exception as exc:
        logger.exception("Copilot.run failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return _to_response(result)


@router.post("/ask", response_model=QueryResponse)
def ask_endpoint(req: AskRequest):
    """Full pipeline: question -> QuerySpec -> rows -> chart."""
    try:
        result = service.ask(req.dataset_id, req.question, mode=req.mode, inline_rows=req.rows)
    except DatasetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except Exception as exc:
        logger.exception("Copilot.ask failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return _to_response(result)


@router.post("/ask/plan", response_model=PlanResponse)
def plan_endpoint(req: AskRequest):
    """Dry-run: question -> QuerySpec (no data loaded)."""
    try:
        spec = service.plan_question(req.dataset_id, req.question, mode=req.mode)
    except DatasetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except Exception as exc:
        logger.exception("Copilot.plan failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return PlanResponse(dataset_id=req.dataset_id, question=req.question, spec=spec)


@router.get("/history", response_model=HistoryResponse)
def history_endpoint(dataset_id: str | None = None, limit: int = Query(50, ge=1, le=500)):
    """Most recent queries, optionally for one dataset."""
    return HistoryResponse(entries=list_queries(dataset_id=dataset_id, limit=limit))


@router.get("/query/cache/stats", response_model=CacheStatsResponse)
def cache_stats_endpoint():
    """Cache size and hit rate, after dropping expired entries."""
    cache = get_cache()
    cache.cleanup_expired()
    return CacheStatsResponse(**cache.stats())


@router.post("/query/cache/clear")
def cache_clear_endpoint():
    """Flush the result cache."""
    removed = get_cache().invalidate()
    return {"cleared": removed}
