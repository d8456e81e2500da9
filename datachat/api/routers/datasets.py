"""
/datasets -- upload, list, inspect, preview, and delete datasets.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel

from datachat.copilot import service
from datachat.copilot.service import DatasetError, DatasetNotFound
from datachat.storage.object_store import StorageError
from datachat.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class DatasetResponse(BaseModel):
    id: str
    name: str
    file_name: str
    file_format: str
    column_schema: dict[str, str]
    row_count: int
    created_at: str


class DatasetListResponse(BaseModel):
    datasets: list[DatasetResponse]


class PreviewResponse(BaseModel):
    dataset_id: str
    data: list[dict[str, Any]]
    columns: list[str]
    error: str | None = None


def _to_response(dataset) -> DatasetResponse:
    return DatasetResponse(
        id=dataset.id,
        name=dataset.name,
        file_name=dataset.file_name,
        file_format=dataset.file_format,
        column_schema=dataset.column_schema,
        row_count=dataset.row_count,
        created_at=dataset.created_at,
    )


@router.post("", response_model=DatasetResponse, status_code=201)
async def upload_endpoint(file: UploadFile = File(...), name: str | None = Form(None)):
    """Upload a CSV or JSON file as a new dataset."""
    content = await file.read()
    try:
        dataset = service.upload_dataset(file.filename or "", content, name=name)
    except DatasetError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        logger.exception("Dataset upload failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return _to_response(dataset)


@router.get("", response_model=DatasetListResponse)
def list_endpoint():
    return DatasetListResponse(datasets=[_to_response(d) for d in service.list_datasets()])


@router.get("/{dataset_id}", response_model=DatasetResponse)
def get_endpoint(dataset_id: str):
    try:
        return _to_response(service.require_dataset(dataset_id))
    except DatasetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/{dataset_id}/preview", response_model=PreviewResponse)
def preview_endpoint(dataset_id: str, limit: int | None = Query(None, ge=1, le=2000)):
    """First rows of the stored file."""
    try:
        result = service.preview_dataset(dataset_id, limit=limit)
    except DatasetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return PreviewResponse(dataset_id=dataset_id, data=result.data, columns=result.columns, error=result.error)


@router.delete("/{dataset_id}")
def delete_endpoint(dataset_id: str):
    try:
        service.delete_dataset(dataset_id)
    except DatasetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"deleted": dataset_id}
