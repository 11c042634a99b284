"""HTTP client for the generation and embedding model service.

The service follows the Ollama wire format:

- ``POST /api/generate`` with ``{model, prompt, stream, options, logprobs}``
  answering ``{response, logprobs: [{token, logprob}, ...]}``
- ``POST /api/embed`` with ``{model, input: [...]}`` answering
  ``{embeddings: [[...], ...]}``

Every failure (transport error, non-success status, undecodable body) is
raised as :class:`ModelServiceError`; callers decide how soft to fail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import requests

from hybrid_search.core.logging import get_logger

logger = get_logger(__name__)


class ModelServiceError(Exception):
    """Raised when the model service cannot produce a usable response."""


@dataclass(frozen=True, slots=True)
class TokenLogprob:
    token: str
    logprob: float


@dataclass(frozen=True, slots=True)
class Completion:
    text: str
    tokens: tuple[TokenLogprob, ...] = field(default_factory=tuple)


class ModelClient(Protocol):
    """Narrow interface the pipeline needs from a model service."""

    def generate(
        self,
        prompt: str,
        *,
        model: str,
        max_tokens: int | None = None,
        logprobs: bool = False,
    ) -> Completion: ...

    def embed(self, texts: Sequence[str], *, model: str) -> list[list[float] | None]: ...


class OllamaClient:
    """``requests``-based client with a bounded per-request timeout."""

    def __init__(
        self,
        host: str,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def generate(
        self,
        prompt: str,
        *,
        model: str,
        max_tokens: int | None = None,
        logprobs: bool = False,
    ) -> Completion:
        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if max_tokens is not None:
            payload["options"] = {"num_predict": max_tokens}
        if logprobs:
            payload["logprobs"] = True
        body = self._post("/api/generate", payload)
        text = body.get("response")
        if not isinstance(text, str):
            raise ModelServiceError("generate response has no text")
        return Completion(text=text, tokens=_parse_logprobs(body.get("logprobs")))

    def embed(self, texts: Sequence[str], *, model: str) -> list[list[float] | None]:
        if not texts:
            return []
        body = self._post("/api/embed", {"model": model, "input": list(texts)})
        raw = body.get("embeddings")
        if not isinstance(raw, list):
            raw = []
        vectors: list[list[float] | None] = []
        for idx in range(len(texts)):
            vector = raw[idx] if idx < len(raw) else None
            if isinstance(vector, list) and vector:
                vectors.append([float(value) for value in vector])
            else:
                vectors.append(None)
        return vectors

    def close(self) -> None:
        self._session.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.host}{path}"
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ModelServiceError(f"request to {url} failed: {exc}") from exc
        if not resp.ok:
            raise ModelServiceError(f"{url} returned {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as exc:
            raise ModelServiceError(f"{url} returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise ModelServiceError(f"{url} returned an unexpected payload")
        logger.debug("model call %s model=%s", path, payload.get("model"))
        return body


def _parse_logprobs(raw: Any) -> tuple[TokenLogprob, ...]:
    if not isinstance(raw, list):
        return ()
    tokens: list[TokenLogprob] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        token = item.get("token")
        logprob = item.get("logprob")
        if isinstance(token, str) and isinstance(logprob, (int, float)):
            tokens.append(TokenLogprob(token=token, logprob=float(logprob)))
    return tuple(tokens)


__all__ = ["ModelServiceError", "TokenLogprob", "Completion", "ModelClient", "OllamaClient"]
