"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from datachat.api.routers import datasets, query
from datachat.core.config import get_settings

app = FastAPI(
    title="DataChat",
    version="0.1.0",
    description="Upload tabular datasets and explore them with structured or natural-language queries",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(datasets.router, prefix="/datasets", tags=["Datasets"])
app.include_router(query.router, tags=["Query"])


@app.get("/health")
def health():
    return {"status": "ok"}


def run():
    """Serve the API with uvicorn on ``API_PORT``."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().api_port)


if __name__ == "__main__":
    run()
