"""Administrative routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from hybrid_search.api.dependencies import get_index_pipeline
from hybrid_search.core.metrics import metrics_response
from hybrid_search.ingest.pipeline import IndexPipeline
from hybrid_search.models.dto import CollectionResponse

router = APIRouter()


@router.get("/collections", response_model=list[CollectionResponse], summary="List indexed collections")
def list_collections(pipeline: IndexPipeline = Depends(get_index_pipeline)) -> list[CollectionResponse]:
    return [
        CollectionResponse(
            name=info.name,
            path=info.path,
            doc_count=info.doc_count,
            created_at=info.created_at,
        )
        for info in pipeline.list_collections()
    ]


@router.get("/metrics", summary="Prometheus metrics")
async def metrics() -> Response:
    return metrics_response()
