"""Retrieval orchestration components."""

from .expansion import QueryExpander
from .hybrid import blend_scores, reciprocal_rank_fusion
from .lexical import LexicalRetriever
from .rerank import Reranker
from .search import QueryService, QueryTooShortError
from .vector_index import VectorIndex, VectorRetriever

__all__ = [
    "QueryExpander",
    "LexicalRetriever",
    "VectorIndex",
    "VectorRetriever",
    "Reranker",
    "QueryService",
    "QueryTooShortError",
    "reciprocal_rank_fusion",
    "blend_scores",
]
