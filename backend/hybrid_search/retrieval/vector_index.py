"""Vector index and embedding-backed retrieval."""

from __future__ import annotations

import math
from array import array
from dataclasses import dataclass
from typing import Sequence

from hybrid_search.core.logging import get_logger
from hybrid_search.core.metrics import DEGRADED_SIGNALS
from hybrid_search.db.sqlite import SQLiteDatabase
from hybrid_search.llm.client import ModelClient, ModelServiceError
from hybrid_search.models.entities import Candidate

logger = get_logger(__name__)

QUERY_TEMPLATE = "task: search result | query: {text}"
DOCUMENT_TEMPLATE = "title: {title} | text: {text}"


@dataclass(slots=True)
class SearchResult:
    document_id: int
    distance: float


def format_for_embedding(text: str, role: str = "query", title: str | None = None) -> str:
    """Wrap text in the role-specific prompt the embedding model expects."""
    if role == "query":
        return QUERY_TEMPLATE.format(text=text)
    if role == "document":
        return DOCUMENT_TEMPLATE.format(title=title or "none", text=text)
    raise ValueError(f"unknown embedding role: {role!r}")


def distance_to_score(distance: float) -> float:
    return 1.0 / (distance + 1.0)


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def vector_from_bytes(data: bytes) -> list[float]:
    floats = array("f")
    floats.frombytes(data)
    return list(floats)


class VectorIndex:
    """In-memory nearest-neighbour index using cosine distance."""

    def __init__(self, dim: int) -> None:
        self.dim = dim
        self._ids: list[int] = []
        self._vectors: list[list[float]] = []

    @property
    def size(self) -> int:
        return len(self._vectors)

    def upsert(self, ids: Sequence[int], vectors: Sequence[Sequence[float]]) -> None:
        if not ids:
            return
        for vector in vectors:
            if len(vector) != self.dim:
                raise ValueError("Vector dimension mismatch")
        positions = {doc_id: idx for idx, doc_id in enumerate(self._ids)}
        for doc_id, vector in zip(ids, vectors):
            normalized = _unit(vector)
            if doc_id in positions:
                self._vectors[positions[doc_id]] = normalized
            else:
                positions[doc_id] = len(self._ids)
                self._ids.append(doc_id)
                self._vectors.append(normalized)

    def remove(self, ids: Sequence[int]) -> None:
        doomed = set(ids)
        kept = [(doc_id, vec) for doc_id, vec in zip(self._ids, self._vectors) if doc_id not in doomed]
        self._ids = [doc_id for doc_id, _ in kept]
        self._vectors = [vec for _, vec in kept]

    def search(self, vector: Sequence[float], top_k: int = 8) -> list[SearchResult]:
        if not self._vectors:
            return []
        if len(vector) != self.dim:
            raise ValueError("Query vector dimension mismatch")
        query = _unit(vector)
        distances = [
            (idx, 1.0 - _dot(self._vectors[idx], query))
            for idx in range(len(self._vectors))
        ]
        distances.sort(key=lambda item: item[1])
        limit = min(top_k, len(distances))
        return [
            SearchResult(document_id=self._ids[idx], distance=max(distance, 0.0))
            for idx, distance in distances[:limit]
        ]

    def rebuild(self, db: SQLiteDatabase, model: str) -> None:
        rows = db.query(
            "SELECT document_id, vector FROM document_embeddings WHERE model = ? AND dim = ?",
            [model, self.dim],
        )
        self._ids = []
        self._vectors = []
        for row in rows:
            self._ids.append(int(row["document_id"]))
            self._vectors.append(_unit(vector_from_bytes(row["vector"])))


class VectorRetriever:
    """Embeds query variants and looks up their nearest documents."""

    def __init__(
        self,
        db: SQLiteDatabase,
        index: VectorIndex,
        client: ModelClient,
        model: str,
        limit: int = 30,
    ) -> None:
        self.db = db
        self.index = index
        self.client = client
        self.model = model
        self.limit = limit

    def embed(self, text: str, role: str = "query", title: str | None = None) -> list[float] | None:
        """Return the embedding for ``text`` or ``None`` if it is unembeddable."""
        prompt = format_for_embedding(text, role=role, title=title)
        try:
            vectors = self.client.embed([prompt], model=self.model)
        except ModelServiceError as exc:
            logger.warning("Embedding request failed: %s", exc)
            DEGRADED_SIGNALS.labels(stage="embedding").inc()
            return None
        vector = vectors[0] if vectors else None
        if not vector:
            logger.warning("Embedding service returned no vector")
            DEGRADED_SIGNALS.labels(stage="embedding").inc()
            return None
        return vector

    def search(self, query: str, limit: int | None = None) -> list[Candidate]:
        """Single-query mode: one embedding, direct top-K."""
        vector = self.embed(query, role="query")
        if vector is None:
            return []
        return self.search_vector(vector, limit or self.limit)

    def search_vector(self, vector: Sequence[float], limit: int) -> list[Candidate]:
        try:
            hits = self.index.search(vector, top_k=limit)
        except ValueError as exc:
            logger.warning("Vector lookup skipped: %s", exc)
            DEGRADED_SIGNALS.labels(stage="vector").inc()
            return []
        return self._hydrate(hits)

    def search_many(self, queries: Sequence[str], limit: int | None = None) -> list[Candidate]:
        """Multi-query mode: keep each document's best score across variants."""
        per_variant = [self.search(query, limit) for query in queries]
        best: dict[str, Candidate] = {}
        for results in per_variant:
            for candidate in results:
                current = best.get(candidate.identifier)
                if current is None or candidate.score > current.score:
                    best[candidate.identifier] = candidate
        merged = sorted(best.values(), key=lambda item: item.score, reverse=True)
        return merged[: limit or self.limit]

    def _hydrate(self, hits: Sequence[SearchResult]) -> list[Candidate]:
        if not hits:
            return []
        ids = [hit.document_id for hit in hits]
        placeholders = ",".join("?" for _ in ids)
        rows = self.db.query(
            f"""
            SELECT
              documents.id,
              collections.name AS collection,
              documents.path,
              documents.title,
              documents.content
            FROM documents
            JOIN collections ON collections.id = documents.collection_id
            WHERE documents.id IN ({placeholders})
            """,
            ids,
        )
        row_map = {row["id"]: row for row in rows}
        candidates: list[Candidate] = []
        for hit in hits:
            row = row_map.get(hit.document_id)
            if row is None:
                continue
            display = f"{row['collection']}/{row['path']}"
            candidates.append(
                Candidate(
                    identifier=display,
                    title=row["title"],
                    path=display,
                    body=row["content"],
                    score=distance_to_score(hit.distance),
                )
            )
        return candidates


def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * y for x, y in zip(a, b))


def _unit(vector: Sequence[float]) -> list[float]:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return [float(value) for value in vector]
    inv = 1.0 / norm
    return [value * inv for value in vector]


__all__ = [
    "VectorIndex",
    "VectorRetriever",
    "SearchResult",
    "format_for_embedding",
    "distance_to_score",
    "vector_to_bytes",
    "vector_from_bytes",
]
