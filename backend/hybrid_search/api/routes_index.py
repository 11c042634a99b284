"""Index API routes."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from hybrid_search.api.dependencies import get_index_pipeline
from hybrid_search.ingest.pipeline import IndexPipeline
from hybrid_search.models.dto import IndexRequest, IndexResponse

router = APIRouter()


@router.post("", response_model=IndexResponse, summary="Index or drop a collection")
def trigger_index(
    request: IndexRequest,
    pipeline: IndexPipeline = Depends(get_index_pipeline),
) -> IndexResponse:
    root = Path(request.path).expanduser()
    if request.drop:
        name = root.resolve().name
        dropped = pipeline.drop_collection(name)
        return IndexResponse(collection=name, dropped=dropped)
    try:
        stats = pipeline.index_path(root)
    except NotADirectoryError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return IndexResponse(**stats.to_dict())
