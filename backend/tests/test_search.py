"""End-to-end tests for the search orchestrator."""

import pytest

from hybrid_search.retrieval.search import QueryTooShortError

from conftest import FakeModelClient, build_service

EXPANSIONS = "1. renewable energy capture\n2. rooftop power output\n3. electricity from sunlight\n"
VERDICTS = {
    "solar notes": ("yes", -0.05),
    "photovoltaic output": ("yes", -0.2),
    "sourdough": ("no", -0.01),
}


def test_combined_ranks_exact_then_semantic_then_irrelevant(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=EXPANSIONS, verdicts=VERDICTS)
    service = build_service(db, settings, client, corpus_dir)
    outcome = service.query("solar panel efficiency", k=10)
    assert [c.identifier for c in outcome.results] == [
        "notes/solar.md",
        "notes/pv.md",
        "notes/bread.txt",
    ]
    scores = [c.score for c in outcome.results]
    assert scores == sorted(scores, reverse=True)
    assert outcome.queries[0] == "solar panel efficiency"
    assert len(outcome.queries) == 4
    assert outcome.fused_count == 3


def test_combined_is_idempotent(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=EXPANSIONS, verdicts=VERDICTS)
    service = build_service(db, settings, client, corpus_dir)
    first = service.query("solar panel efficiency")
    second = service.query("solar panel efficiency")
    assert [(c.identifier, c.score) for c in first.results] == [(c.identifier, c.score) for c in second.results]


def test_combined_reranks_only_original_query(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=EXPANSIONS, verdicts=VERDICTS)
    service = build_service(db, settings, client, corpus_dir)
    service.query("solar panel efficiency")
    judge_prompts = [call["prompt"] for call in client.generate_calls if call["logprobs"]]
    assert len(judge_prompts) == 3
    assert all("Query: solar panel efficiency" in prompt for prompt in judge_prompts)


def test_combined_survives_vector_failure(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=None, verdicts=VERDICTS)
    service = build_service(db, settings, client, corpus_dir)
    client.fail_embed = True
    outcome = service.query("solar panel efficiency")
    assert [c.identifier for c in outcome.results] == ["notes/solar.md"]
    assert outcome.queries == ("solar panel efficiency",)


def test_combined_survives_rerank_failure(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=None, verdicts=VERDICTS, fail_judge_for=["solar notes", "photovoltaic", "sourdough"])
    service = build_service(db, settings, client, corpus_dir)
    outcome = service.query("solar panel efficiency")
    assert outcome.results[0].identifier == "notes/solar.md"
    assert outcome.results[0].score == pytest.approx(0.75 + 0.25 * 0.5)


def test_rerank_candidates_are_bounded(db, settings, tmp_path) -> None:
    root = tmp_path / "many"
    root.mkdir()
    for idx in range(40):
        (root / f"doc{idx:02d}.md").write_text(f"# Doc {idx}\n\nsolar report number {idx}\n", encoding="utf-8")
    settings.top_k_lexical = 50
    settings.top_k_vector = 50
    client = FakeModelClient(expansion=None)
    service = build_service(db, settings, client, root)
    outcome = service.query("solar report", k=5)
    assert len([call for call in client.generate_calls if call["logprobs"]]) == 30
    assert outcome.fused_count == 40
    assert len(outcome.results) == 5


def test_search_is_lexical_only(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=EXPANSIONS)
    service = build_service(db, settings, client, corpus_dir)
    client.embed_calls.clear()
    outcome = service.search("photovoltaic")
    assert [c.identifier for c in outcome.results] == ["notes/pv.md"]
    assert client.generate_calls == []
    assert client.embed_calls == []


def test_vsearch_uses_expansions(db, settings, corpus_dir) -> None:
    client = FakeModelClient(expansion=EXPANSIONS)
    service = build_service(db, settings, client, corpus_dir)
    outcome = service.vsearch("solar panel efficiency", k=2)
    assert len(outcome.queries) == 4
    assert len(outcome.results) == 2
    assert "notes/bread.txt" not in {c.identifier for c in outcome.results}


def test_empty_corpus_returns_no_results(db, settings) -> None:
    service = build_service(db, settings, FakeModelClient(expansion=EXPANSIONS))
    outcome = service.query("solar panel efficiency")
    assert outcome.is_empty
    assert outcome.fused_count == 0


@pytest.mark.parametrize("method", ["search", "vsearch", "query"])
def test_short_query_is_rejected_before_model_calls(db, settings, method) -> None:
    client = FakeModelClient(expansion=EXPANSIONS)
    service = build_service(db, settings, client)
    with pytest.raises(QueryTooShortError):
        getattr(service, method)(" x ")
    assert client.generate_calls == []
    assert client.embed_calls == []
