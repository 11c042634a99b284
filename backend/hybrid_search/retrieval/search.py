"""Search orchestration."""

from __future__ import annotations

import time
from typing import Callable

from hybrid_search.core.config import Settings
from hybrid_search.core.logging import get_logger
from hybrid_search.core.metrics import SEARCH_COUNT, SEARCH_LATENCY
from hybrid_search.db.sqlite import SQLiteDatabase
from hybrid_search.llm.client import ModelClient
from hybrid_search.models.entities import ScoredResultSet, SearchOutcome
from hybrid_search.retrieval.expansion import QueryExpander
from hybrid_search.retrieval.hybrid import BlendTiers, blend_scores, reciprocal_rank_fusion
from hybrid_search.retrieval.lexical import MIN_QUERY_CHARS, LexicalRetriever
from hybrid_search.retrieval.rerank import Reranker
from hybrid_search.retrieval.vector_index import VectorIndex, VectorRetriever

logger = get_logger(__name__)


class QueryTooShortError(ValueError):
    """Raised before any model call when the query cannot be searched."""

    def __init__(self, query: str) -> None:
        super().__init__(f"Query must be at least {MIN_QUERY_CHARS} characters: {query!r}")
        self.query = query


class QueryService:
    """Coordinates lexical, vector, and combined retrieval flows."""

    def __init__(
        self,
        db: SQLiteDatabase,
        settings: Settings,
        vector_index: VectorIndex,
        client: ModelClient,
    ) -> None:
        self.db = db
        self.settings = settings
        self.expander = QueryExpander(client, settings.generation_model, settings.expansion_count)
        self.lexical = LexicalRetriever(db, limit=settings.top_k_lexical)
        self.vector = VectorRetriever(
            db,
            vector_index,
            client,
            settings.embedding_model,
            limit=settings.top_k_vector,
        )
        self.reranker = Reranker(
            client,
            settings.rerank_model,
            batch_size=settings.rerank_batch_size,
            max_chars=settings.rerank_max_chars,
            max_tokens=settings.rerank_max_tokens,
        )
        self.tiers = BlendTiers(
            top_rank=settings.blend_top_rank,
            mid_rank=settings.blend_mid_rank,
            top_weight=settings.blend_top_weight,
            mid_weight=settings.blend_mid_weight,
            tail_weight=settings.blend_tail_weight,
        )

    def search(self, query_text: str, k: int | None = None) -> SearchOutcome:
        """Lexical-only search on the query as typed."""
        return self._timed("search", query_text, k, self._search)

    def vsearch(self, query_text: str, k: int | None = None) -> SearchOutcome:
        """Vector-only search over the expanded query set."""
        return self._timed("vsearch", query_text, k, self._vsearch)

    def query(self, query_text: str, k: int | None = None) -> SearchOutcome:
        """Expansion, dual retrieval, fusion, reranking and blending."""
        return self._timed("query", query_text, k, self._query)

    # ------------------------------------------------------------------

    def _search(self, query_text: str, top_k: int) -> SearchOutcome:
        results = self.lexical.search(query_text, limit=top_k)
        return SearchOutcome(mode="search", results=results, queries=(query_text,))

    def _vsearch(self, query_text: str, top_k: int) -> SearchOutcome:
        queries = self.expander.expand(query_text)
        results = self.vector.search_many(queries, limit=max(top_k, self.settings.top_k_vector))
        return SearchOutcome(mode="vsearch", results=results[:top_k], queries=tuple(queries))

    def _query(self, query_text: str, top_k: int) -> SearchOutcome:
        queries = self.expander.expand(query_text)
        result_sets: list[ScoredResultSet] = []
        for position, variant in enumerate(queries):
            weight = self.settings.original_weight if position == 0 else self.settings.expansion_weight
            lexical_hits = self.lexical.search(variant)
            if lexical_hits:
                result_sets.append(ScoredResultSet(tuple(lexical_hits), weight, source=f"fts:{position}"))
            vector_hits = self.vector.search(variant)
            if vector_hits:
                result_sets.append(ScoredResultSet(tuple(vector_hits), weight, source=f"vec:{position}"))

        fused = reciprocal_rank_fusion(result_sets, k=self.settings.rrf_k)
        logger.debug("Fused %s candidates from %s result sets", len(fused), len(result_sets))
        shortlist = fused[: self.settings.rerank_candidates]
        judgments = self.reranker.rerank(query_text, shortlist)
        results = blend_scores(shortlist, judgments, limit=top_k, tiers=self.tiers)
        return SearchOutcome(mode="query", results=results, queries=tuple(queries), fused_count=len(fused))

    def _timed(
        self,
        mode: str,
        query_text: str,
        k: int | None,
        runner: Callable[[str, int], SearchOutcome],
    ) -> SearchOutcome:
        if len(query_text.strip()) < MIN_QUERY_CHARS:
            SEARCH_COUNT.labels(mode=mode, status="rejected").inc()
            raise QueryTooShortError(query_text)
        top_k = k or self.settings.top_k_final
        start_time = time.perf_counter()
        outcome = runner(query_text, top_k)
        SEARCH_LATENCY.labels(mode=mode).observe(time.perf_counter() - start_time)
        SEARCH_COUNT.labels(mode=mode, status="ok" if outcome.results else "empty").inc()
        logger.info("%s returned %s results for %r", mode, len(outcome.results), query_text)
        return outcome


__all__ = ["QueryService", "QueryTooShortError"]
