"""Value records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence


@dataclass(frozen=True, slots=True)
class Candidate:
    """A document as seen by one pipeline stage.

    ``score`` is stage-specific: a normalized lexical or vector score, an
    accumulated fusion score, or the final blended score.
    """

    identifier: str
    title: str
    path: str
    body: str
    score: float = 0.0

    def with_score(self, score: float) -> "Candidate":
        return replace(self, score=score)


@dataclass(frozen=True, slots=True)
class ScoredResultSet:
    """Ranked output of one retrieval method for one query variant."""

    candidates: tuple[Candidate, ...]
    weight: float
    source: str = ""

    def __post_init__(self) -> None:
        if self.weight <= 0:
            raise ValueError("fusion weight must be positive")


@dataclass(slots=True)
class FusionEntry:
    candidate: Candidate
    score: float = 0.0


@dataclass(frozen=True, slots=True)
class SearchOutcome:
    """Ranked results plus the diagnostics printed by ``--debug``."""

    mode: str
    results: Sequence[Candidate]
    queries: Sequence[str] = field(default_factory=tuple)
    fused_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.results


__all__ = [
    "Candidate",
    "ScoredResultSet",
    "FusionEntry",
    "SearchOutcome",
]
