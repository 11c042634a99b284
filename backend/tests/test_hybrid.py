"""Tests for rank fusion and score blending."""

import pytest

from hybrid_search.models.entities import Candidate, ScoredResultSet
from hybrid_search.retrieval.hybrid import BlendTiers, blend_score, blend_scores, reciprocal_rank_fusion


def _doc(identifier: str, score: float = 0.0, title: str | None = None) -> Candidate:
    return Candidate(identifier=identifier, title=title or identifier, path=identifier, body="", score=score)


def _set(ids: list[str], weight: float) -> ScoredResultSet:
    return ScoredResultSet(tuple(_doc(i, score=0.99) for i in ids), weight)


def test_rrf_sums_weighted_reciprocal_ranks() -> None:
    fused = reciprocal_rank_fusion([_set(["x", "a"], 2.0), _set(["p", "q", "r", "s", "a"], 1.0)])
    scores = {candidate.identifier: candidate.score for candidate in fused}
    assert scores["a"] == pytest.approx(2 / 62 + 1 / 65)
    assert scores["x"] == pytest.approx(2 / 61)
    assert scores["s"] == pytest.approx(1 / 64)


def test_rrf_ignores_incoming_scores_and_sorts_descending() -> None:
    low = ScoredResultSet((_doc("a", 0.01), _doc("b", 0.99)), 1.0)
    fused = reciprocal_rank_fusion([low])
    assert [c.identifier for c in fused] == ["a", "b"]
    assert fused[0].score > fused[1].score


def test_rrf_keeps_first_record_and_tie_order() -> None:
    first = ScoredResultSet((Candidate("a", "first title", "a", "body one"), _doc("b")), 1.0)
    second = ScoredResultSet((_doc("b"), Candidate("a", "second title", "a", "body two")), 1.0)
    fused = reciprocal_rank_fusion([first, second])
    assert [c.identifier for c in fused] == ["a", "b"]
    assert fused[0].title == "first title"
    assert fused[0].score == pytest.approx(fused[1].score)


def test_rrf_limit_and_empty_input() -> None:
    assert reciprocal_rank_fusion([]) == []
    fused = reciprocal_rank_fusion([_set([str(i) for i in range(40)], 1.0)], limit=30)
    assert len(fused) == 30


def test_result_set_rejects_non_positive_weight() -> None:
    with pytest.raises(ValueError):
        ScoredResultSet((), 0.0)


def test_blend_score_tiers() -> None:
    tiers = BlendTiers()
    assert blend_score(1, 1.0, tiers) == pytest.approx(1.0)
    assert blend_score(15, 0.0, tiers) == pytest.approx(0.4 / 15)
    assert blend_score(4, 0.5, tiers) == pytest.approx(0.6 * 0.25 + 0.4 * 0.5)
    assert tiers.retrieval_weight(3) == 0.75
    assert tiers.retrieval_weight(10) == 0.60
    assert tiers.retrieval_weight(11) == 0.40


def test_blend_defaults_missing_and_failed_judgments_to_neutral() -> None:
    fused = [_doc("a"), _doc("b"), _doc("c")]
    blended = blend_scores(fused, {"a": -1.0, "c": 0.5})
    scores = {c.identifier: c.score for c in blended}
    assert scores["a"] == pytest.approx(0.75 + 0.25 * 0.5)
    assert scores["b"] == pytest.approx(0.75 * 0.5 + 0.25 * 0.5)


def test_blend_reorders_and_truncates() -> None:
    fused = [_doc(str(i)) for i in range(1, 13)]
    judgments = {str(i): 0.0 for i in range(1, 12)}
    judgments["12"] = 1.0
    blended = blend_scores(fused, judgments, limit=3)
    assert [c.identifier for c in blended] == ["1", "12", "2"]


def test_blend_is_stable_for_ties() -> None:
    fused = [_doc("a"), _doc("b")]
    tiers = BlendTiers(top_weight=0.0)
    blended = blend_scores(fused, {"a": 0.7, "b": 0.7}, tiers=tiers)
    assert [c.identifier for c in blended] == ["a", "b"]
