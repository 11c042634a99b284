"""LLM relevance judgments used for reranking."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from hybrid_search.core.logging import get_logger
from hybrid_search.core.metrics import RERANK_FALLBACKS
from hybrid_search.llm.client import ModelClient, ModelServiceError, TokenLogprob
from hybrid_search.models.entities import Candidate

logger = get_logger(__name__)

NEUTRAL_SCORE = 0.5
FAILED_SCORE = -1.0
YES_FLOOR = 0.6
NO_CEILING = 0.4
LABEL_SPAN = 0.4

JUDGE_PROMPT = (
    "Judge whether the document is relevant to the search query. "
    'Answer only "yes" or "no".\n\n'
    "Query: {query}\n\n"
    "Document title: {title}\n"
    "Document content:\n{content}\n\n"
    "Relevant:"
)


def _first_index(tokens: Sequence[TokenLogprob], label: str) -> int | None:
    for idx, token in enumerate(tokens):
        if label in token.token.lower():
            return idx
    return None


def judgment_score(tokens: Sequence[TokenLogprob]) -> float:
    """Turn judge output tokens into a score in [0, 1].

    The earliest token containing "yes" or "no" decides the label; its
    probability sets the confidence. "yes" maps to [0.6, 1.0], "no" to
    [0.0, 0.4], and no label at all to 0.5.
    """
    yes_at = _first_index(tokens, "yes")
    no_at = _first_index(tokens, "no")
    if yes_at is None and no_at is None:
        return NEUTRAL_SCORE
    if no_at is None or (yes_at is not None and yes_at < no_at):
        confidence = _probability(tokens[yes_at].logprob)
        return YES_FLOOR + LABEL_SPAN * confidence
    confidence = _probability(tokens[no_at].logprob)
    return NO_CEILING - LABEL_SPAN * confidence


def _probability(logprob: float) -> float:
    return min(max(math.exp(logprob), 0.0), 1.0)


class Reranker:
    """Scores candidates against the original query in bounded batches."""

    def __init__(
        self,
        client: ModelClient,
        model: str,
        batch_size: int = 5,
        max_chars: int = 4000,
        max_tokens: int = 2,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.model = model
        self.batch_size = batch_size
        self.max_chars = max_chars
        self.max_tokens = max_tokens

    def build_prompt(self, query: str, candidate: Candidate) -> str:
        return JUDGE_PROMPT.format(
            query=query,
            title=candidate.title,
            content=candidate.body[: self.max_chars],
        )

    def judge(self, query: str, candidate: Candidate) -> float:
        """Score one candidate; transport failures give ``FAILED_SCORE``."""
        try:
            completion = self.client.generate(
                self.build_prompt(query, candidate),
                model=self.model,
                max_tokens=self.max_tokens,
                logprobs=True,
            )
        except ModelServiceError as exc:
            logger.warning("Rerank judgment failed for %s: %s", candidate.identifier, exc)
            RERANK_FALLBACKS.inc()
            return FAILED_SCORE
        if completion.tokens:
            return judgment_score(completion.tokens)
        # No logprobs returned; judge on the text with full confidence.
        return judgment_score([TokenLogprob(token=completion.text, logprob=0.0)])

    def rerank(self, query: str, candidates: Sequence[Candidate]) -> dict[str, float]:
        """Return ``identifier -> score``; batches run one after another."""
        judgments: dict[str, float] = {}
        if not candidates:
            return judgments
        with ThreadPoolExecutor(max_workers=self.batch_size, thread_name_prefix="rerank") as pool:
            for start in range(0, len(candidates), self.batch_size):
                batch = candidates[start : start + self.batch_size]
                futures = [pool.submit(self.judge, query, candidate) for candidate in batch]
                for candidate, future in zip(batch, futures):
                    judgments[candidate.identifier] = future.result()
        return judgments


__all__ = ["Reranker", "judgment_score", "NEUTRAL_SCORE", "FAILED_SCORE", "JUDGE_PROMPT"]
