"""CLI tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from hybrid_search.api import dependencies as deps
from hybrid_search.cli.main import app

from conftest import FakeModelClient

runner = CliRunner()


@pytest.fixture(autouse=True)
def fake_models() -> FakeModelClient:
    fake = FakeModelClient(
        expansion="1. electricity from sunlight\n2. rooftop power output",
        verdicts={"solar notes": ("yes", -0.05), "photovoltaic": ("yes", -0.3)},
    )
    deps._CLIENT = fake
    yield fake
    logging.getLogger().handlers = []


def test_index_then_collections(corpus_dir: Path) -> None:
    result = runner.invoke(app, ["index", str(corpus_dir)])
    assert result.exit_code == 0
    assert 'Indexed 3 files' in result.stdout
    listing = runner.invoke(app, ["collections"])
    assert "notes (3 docs)" in listing.stdout


def test_query_debug_prints_expansions(corpus_dir: Path) -> None:
    runner.invoke(app, ["index", str(corpus_dir)])
    result = runner.invoke(app, ["query", "solar panel efficiency", "--debug", "-n", "2"])
    assert result.exit_code == 0
    assert "[original] solar panel efficiency" in result.stdout
    assert "[variant 1] electricity from sunlight" in result.stdout
    assert "Fused candidates: 3" in result.stdout
    lines = [line for line in result.stdout.splitlines() if "notes/" in line]
    assert "notes/solar.md" in lines[0]
    assert "notes/pv.md" in lines[1]


def test_search_without_results(corpus_dir: Path) -> None:
    runner.invoke(app, ["index", str(corpus_dir)])
    result = runner.invoke(app, ["search", "quantum chromodynamics"])
    assert result.exit_code == 0
    assert "No results." in result.stdout


def test_short_query_is_a_usage_error() -> None:
    result = runner.invoke(app, ["vsearch", "x"])
    assert result.exit_code == 2


def test_drop_collection(corpus_dir: Path) -> None:
    runner.invoke(app, ["index", str(corpus_dir)])
    result = runner.invoke(app, ["index", str(corpus_dir), "--drop"])
    assert result.exit_code == 0
    assert 'Dropped collection "notes"' in result.stdout
    assert "No collections" in runner.invoke(app, ["collections"]).stdout
