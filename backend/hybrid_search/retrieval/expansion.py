"""Query expansion through a generative model."""

from __future__ import annotations

import re

from hybrid_search.core.logging import get_logger
from hybrid_search.core.metrics import DEGRADED_SIGNALS
from hybrid_search.llm.client import ModelClient, ModelServiceError

logger = get_logger(__name__)

_MARKER_RE = re.compile(r"^\s*(?:[-*•]+|\(?\d+[.):](?!\d)|\d+\s*-\s)\s*")

EXPANSION_PROMPT = (
    "You are helping a search engine find documents.\n"
    "Write {count} alternative phrasings of the search query below. "
    "Keep the meaning, vary the wording. "
    "Output one query per line with no numbering and no extra text.\n\n"
    "Query: {query}\n"
)


def parse_expansions(text: str, limit: int) -> list[str]:
    """Split a model answer into at most ``limit`` cleaned query lines."""
    variants: list[str] = []
    for line in text.splitlines():
        cleaned = _MARKER_RE.sub("", line).strip().strip('"').strip()
        if not cleaned:
            continue
        variants.append(cleaned)
        if len(variants) >= limit:
            break
    return variants


class QueryExpander:
    """Turns one query into ``[original, *alternates]``; never raises."""

    def __init__(self, client: ModelClient, model: str, count: int = 3) -> None:
        self.client = client
        self.model = model
        self.count = count

    def expand(self, query: str) -> list[str]:
        if self.count <= 0:
            return [query]
        prompt = EXPANSION_PROMPT.format(count=self.count, query=query)
        try:
            completion = self.client.generate(prompt, model=self.model)
        except ModelServiceError as exc:
            logger.warning("Query expansion failed, searching original only: %s", exc)
            DEGRADED_SIGNALS.labels(stage="expansion").inc()
            return [query]
        variants = parse_expansions(completion.text, self.count)
        if not variants:
            logger.warning("Query expansion returned no usable lines")
            DEGRADED_SIGNALS.labels(stage="expansion").inc()
        return [query, *variants]


__all__ = ["QueryExpander", "parse_expansions", "EXPANSION_PROMPT"]
