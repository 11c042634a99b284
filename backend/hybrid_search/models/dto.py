"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from hybrid_search.models.entities import SearchOutcome
from hybrid_search.utils.text import preview


class SearchRequest(BaseModel):
    query: str
    k: int = Field(default=10, ge=1, le=50)
    debug: bool = False


class SearchHit(BaseModel):
    identifier: str
    path: str
    title: str
    score: float
    snippet: str


class SearchResponse(BaseModel):
    mode: Literal["search", "vsearch", "query"]
    results: list[SearchHit]
    queries: list[str] | None = None
    fused_count: int | None = None

    @classmethod
    def from_outcome(cls, outcome: SearchOutcome, debug: bool = False) -> "SearchResponse":
        hits = [
            SearchHit(
                identifier=candidate.identifier,
                path=candidate.path,
                title=candidate.title,
                score=candidate.score,
                snippet=preview(candidate.body),
            )
            for candidate in outcome.results
        ]
        if not debug:
            return cls(mode=outcome.mode, results=hits)
        return cls(
            mode=outcome.mode,
            results=hits,
            queries=list(outcome.queries),
            fused_count=outcome.fused_count,
        )


class IndexRequest(BaseModel):
    path: str
    drop: bool = False


class IndexResponse(BaseModel):
    collection: str
    indexed: int = 0
    unchanged: int = 0
    removed: int = 0
    unembedded: int = 0
    dropped: bool = False


class CollectionResponse(BaseModel):
    name: str
    path: str
    doc_count: int
    created_at: int


__all__ = [
    "SearchRequest",
    "SearchHit",
    "SearchResponse",
    "IndexRequest",
    "IndexResponse",
    "CollectionResponse",
]
