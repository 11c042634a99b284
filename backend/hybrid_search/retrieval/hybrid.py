"""Rank fusion and score blending."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from hybrid_search.models.entities import Candidate, FusionEntry, ScoredResultSet

DEFAULT_RRF_K = 60.0
NEUTRAL_CONFIDENCE = 0.5


def reciprocal_rank_fusion(
    result_sets: Sequence[ScoredResultSet],
    k: float = DEFAULT_RRF_K,
    limit: int | None = None,
) -> list[Candidate]:
    """Combine weighted rankings using reciprocal rank fusion.

    A candidate at 1-based rank ``r`` in a set of weight ``w`` contributes
    ``w / (r + k)``; contributions for one identifier are summed. Incoming
    scores are ignored, only positions matter. The first record seen for an
    identifier represents it in the output. Ties keep first-seen order.
    """
    entries: dict[str, FusionEntry] = {}
    for result_set in result_sets:
        for rank, candidate in enumerate(result_set.candidates, start=1):
            entry = entries.get(candidate.identifier)
            if entry is None:
                entry = entries[candidate.identifier] = FusionEntry(candidate=candidate)
            entry.score += result_set.weight / (rank + k)
    fused = sorted(entries.values(), key=lambda item: item.score, reverse=True)
    if limit is not None:
        fused = fused[:limit]
    return [entry.candidate.with_score(entry.score) for entry in fused]


@dataclass(frozen=True, slots=True)
class BlendTiers:
    """Retrieval weight by fused rank; the reranker gets the remainder."""

    top_rank: int = 3
    mid_rank: int = 10
    top_weight: float = 0.75
    mid_weight: float = 0.60
    tail_weight: float = 0.40

    def retrieval_weight(self, rank: int) -> float:
        if rank <= self.top_rank:
            return self.top_weight
        if rank <= self.mid_rank:
            return self.mid_weight
        return self.tail_weight


def effective_confidence(judgments: Mapping[str, float], identifier: str) -> float:
    """Reranker confidence, with missing or out-of-range values treated as neutral."""
    value = judgments.get(identifier)
    if value is None or not 0.0 <= value <= 1.0:
        return NEUTRAL_CONFIDENCE
    return value


def blend_score(rank: int, confidence: float, tiers: BlendTiers) -> float:
    weight = tiers.retrieval_weight(rank)
    return weight * (1.0 / rank) + (1.0 - weight) * confidence


def blend_scores(
    fused: Sequence[Candidate],
    judgments: Mapping[str, float],
    limit: int | None = None,
    tiers: BlendTiers | None = None,
) -> list[Candidate]:
    """Position-aware blend of fused rank and reranker confidence."""
    tiers = tiers or BlendTiers()
    blended = [
        candidate.with_score(
            blend_score(rank, effective_confidence(judgments, candidate.identifier), tiers)
        )
        for rank, candidate in enumerate(fused, start=1)
    ]
    blended.sort(key=lambda item: item.score, reverse=True)
    return blended[:limit] if limit is not None else blended


__all__ = [
    "reciprocal_rank_fusion",
    "blend_scores",
    "blend_score",
    "effective_confidence",
    "BlendTiers",
    "DEFAULT_RRF_K",
    "NEUTRAL_CONFIDENCE",
]
