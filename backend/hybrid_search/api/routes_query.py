"""Query API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from hybrid_search.api.dependencies import get_query_service
from hybrid_search.models.dto import SearchRequest, SearchResponse
from hybrid_search.retrieval.search import QueryService, QueryTooShortError

router = APIRouter()


@router.post("/search", response_model=SearchResponse, summary="Full-text search")
def run_search(
    request: SearchRequest,
    service: QueryService = Depends(get_query_service),
) -> SearchResponse:
    try:
        outcome = service.search(request.query, k=request.k)
    except QueryTooShortError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return SearchResponse.from_outcome(outcome, debug=request.debug)


@router.post("/vsearch", response_model=SearchResponse, summary="Vector search over expanded queries")
def run_vsearch(
    request: SearchRequest,
    service: QueryService = Depends(get_query_service),
) -> SearchResponse:
    try:
        outcome = service.vsearch(request.query, k=request.k)
    except QueryTooShortError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return SearchResponse.from_outcome(outcome, debug=request.debug)


@router.post("/query", response_model=SearchResponse, summary="Hybrid search with reranking")
def run_query(
    request: SearchRequest,
    service: QueryService = Depends(get_query_service),
) -> SearchResponse:
    try:
        outcome = service.query(request.query, k=request.k)
    except QueryTooShortError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return SearchResponse.from_outcome(outcome, debug=request.debug)
