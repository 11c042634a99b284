"""Test fixtures for hybrid search."""

from __future__ import annotations

import re
import sys
import threading
from pathlib import Path
from typing import Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from hybrid_search.core.config import Settings  # noqa: E402
from hybrid_search.db.sqlite import SQLiteDatabase  # noqa: E402
from hybrid_search.ingest.pipeline import IndexPipeline  # noqa: E402
from hybrid_search.llm.client import Completion, ModelServiceError, TokenLogprob  # noqa: E402
from hybrid_search.retrieval.search import QueryService  # noqa: E402
from hybrid_search.retrieval.vector_index import VectorIndex  # noqa: E402

_WORD_RE = re.compile(r"[a-z]+")

ENERGY_WORDS = (
    "solar", "photovoltaic", "sunlight", "panel", "rooftop", "electric",
    "efficien", "module", "renewable", "energy", "power",
)
BREAD_WORDS = ("bread", "sourdough", "yeast", "baking", "flour", "dough")


def topic_vector(text: str) -> list[float]:
    """Three-dimensional bag of topics: energy, baking, constant."""
    words = _WORD_RE.findall(text.lower())
    energy = sum(1 for word in words if word.startswith(ENERGY_WORDS))
    bread = sum(1 for word in words if word.startswith(BREAD_WORDS))
    return [float(energy), float(bread), 0.1]


class FakeModelClient:
    """In-process stand-in for the model service.

    ``expansion`` is the raw text returned for expansion prompts (``None``
    makes that call fail). ``verdicts`` maps a substring of the judged
    document to ``(token, logprob)``; unmatched documents get ``default_verdict``.
    """

    def __init__(
        self,
        expansion: str | None = None,
        verdicts: dict[str, tuple[str, float]] | None = None,
        default_verdict: tuple[str, float] = ("no", -0.1),
        fail_embed: bool = False,
        fail_judge_for: Sequence[str] = (),
    ) -> None:
        self.expansion = expansion
        self.verdicts = verdicts or {}
        self.default_verdict = default_verdict
        self.fail_embed = fail_embed
        self.fail_judge_for = tuple(fail_judge_for)
        self.generate_calls: list[dict] = []
        self.embed_calls: list[list[str]] = []
        self._lock = threading.Lock()

    def generate(self, prompt: str, *, model: str, max_tokens: int | None = None, logprobs: bool = False) -> Completion:
        with self._lock:
            self.generate_calls.append(
                {"prompt": prompt, "model": model, "max_tokens": max_tokens, "logprobs": logprobs}
            )
        if not logprobs:
            if self.expansion is None:
                raise ModelServiceError("expansion unavailable")
            return Completion(text=self.expansion)
        document = prompt.split("Document title:", 1)[1].lower()
        if any(marker in document for marker in self.fail_judge_for):
            raise ModelServiceError("judge unavailable")
        token, logprob = self.default_verdict
        for marker, verdict in self.verdicts.items():
            if marker in document:
                token, logprob = verdict
                break
        return Completion(text=token, tokens=(TokenLogprob(token=token, logprob=logprob),))

    def embed(self, texts: Sequence[str], *, model: str) -> list[list[float] | None]:
        with self._lock:
            self.embed_calls.append(list(texts))
        if self.fail_embed:
            raise ModelServiceError("embedding unavailable")
        return [topic_vector(text) for text in texts]


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("HSEARCH_DB_PATH", str(tmp_path / "index.db"))
    monkeypatch.setenv("HSEARCH_EMBEDDING_DIM", "3")
    monkeypatch.delenv("HSEARCH_CONFIG", raising=False)

    from hybrid_search.api import dependencies as deps

    deps.reset_state()
    yield
    deps.reset_state()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "index.db", embedding_dim=3)


@pytest.fixture
def db(settings: Settings) -> SQLiteDatabase:
    database = SQLiteDatabase(settings.db_path)
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def corpus_dir(tmp_path: Path) -> Path:
    root = tmp_path / "notes"
    root.mkdir()
    (root / "solar.md").write_text(
        "# Solar notes\n\nPractical tips on solar panel efficiency for rooftops.\n",
        encoding="utf-8",
    )
    (root / "pv.md").write_text(
        "# Photovoltaic output\n\nHow photovoltaic modules convert sunlight into electricity.\n",
        encoding="utf-8",
    )
    (root / "bread.txt").write_text(
        "Sourdough bread baking with wild yeast and rye flour.\n",
        encoding="utf-8",
    )
    (root / "ignored.json").write_text("{}", encoding="utf-8")
    return root


def build_service(
    db: SQLiteDatabase,
    settings: Settings,
    client: FakeModelClient,
    corpus: Path | None = None,
) -> QueryService:
    index = VectorIndex(dim=settings.embedding_dim)
    service = QueryService(db=db, settings=settings, vector_index=index, client=client)
    if corpus is not None:
        IndexPipeline(db, settings, embedder=service.vector, vector_index=index).index_path(corpus)
    return service


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient()
