"""Full-text retrieval over the SQLite FTS5 index."""

from __future__ import annotations

import math
import sqlite3

from hybrid_search.core.logging import get_logger
from hybrid_search.core.metrics import DEGRADED_SIGNALS
from hybrid_search.db.sqlite import SQLiteDatabase
from hybrid_search.models.entities import Candidate

logger = get_logger(__name__)

MIN_QUERY_CHARS = 2
NEAR_DISTANCE = 10
TITLE_WEIGHT = 10.0
BODY_WEIGHT = 1.0

# Logistic squashing of the BM25 magnitude: ~0.2 at 2, 0.5 at 5, ~0.92 at 10.
_SQUASH_CENTER = 5.0
_SQUASH_SCALE = 2.0


def _quote(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def build_match_expression(query: str) -> str | None:
    """Build ``phrase OR NEAR(terms) OR term1 OR term2 ...`` for FTS5.

    Returns ``None`` when the query is too short to search.
    """
    text = query.strip()
    if len(text) < MIN_QUERY_CHARS:
        return None
    terms = [term for term in text.split() if len(term) > 1]
    if len(terms) == 1 and terms[0] == text:
        return _quote(terms[0])
    clauses = [_quote(text)]
    if len(terms) > 1:
        quoted = [_quote(term) for term in terms]
        clauses.append(f"NEAR({' '.join(quoted)}, {NEAR_DISTANCE})")
        clauses.append("(" + " OR ".join(quoted) + ")")
    elif terms:
        clauses.append(_quote(terms[0]))
    return " OR ".join(clauses)


def normalize_bm25(raw: float) -> float:
    """Map an FTS5 ``bm25()`` value (more negative is better) into (0, 1)."""
    strength = -raw
    return 1.0 / (1.0 + math.exp(-(strength - _SQUASH_CENTER) / _SQUASH_SCALE))


class LexicalRetriever:
    def __init__(self, db: SQLiteDatabase, limit: int = 30) -> None:
        self.db = db
        self.limit = limit

    def search(self, query: str, limit: int | None = None) -> list[Candidate]:
        expression = build_match_expression(query)
        if expression is None:
            return []
        return self.run(expression, limit or self.limit)

    def run(self, expression: str, limit: int) -> list[Candidate]:
        """Execute a raw match expression; engine errors yield no results."""
        try:
            rows = self.db.query(
                f"""
                SELECT
                  documents.id,
                  collections.name AS collection,
                  documents.path,
                  documents.title,
                  documents.content,
                  bm25(documents_fts, {TITLE_WEIGHT:.1f}, {BODY_WEIGHT:.1f}) AS raw_score
                FROM documents_fts
                JOIN documents ON documents.id = documents_fts.rowid
                JOIN collections ON collections.id = documents.collection_id
                WHERE documents_fts MATCH ?
                ORDER BY raw_score ASC
                LIMIT ?
                """,
                [expression, limit],
            )
        except sqlite3.Error as exc:
            logger.warning("Full-text query %r failed: %s", expression, exc)
            DEGRADED_SIGNALS.labels(stage="lexical").inc()
            return []
        return [
            Candidate(
                identifier=f"{row['collection']}/{row['path']}",
                title=row["title"],
                path=f"{row['collection']}/{row['path']}",
                body=row["content"],
                score=normalize_bm25(float(row["raw_score"])),
            )
            for row in rows
        ]


__all__ = ["LexicalRetriever", "build_match_expression", "normalize_bm25", "MIN_QUERY_CHARS"]
