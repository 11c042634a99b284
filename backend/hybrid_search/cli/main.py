"""CLI entrypoint for hybrid search."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Callable

import typer

from hybrid_search.api import dependencies as deps
from hybrid_search.core.logging import configure_logging
from hybrid_search.models.dto import SearchResponse
from hybrid_search.models.entities import SearchOutcome
from hybrid_search.retrieval.search import QueryService, QueryTooShortError
from hybrid_search.utils.text import preview

app = typer.Typer(name="hsearch", help="Hybrid lexical + vector search over local text files")

USAGE_EXIT_CODE = 2


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress to stderr"),
) -> None:
    configure_logging(level="INFO" if verbose else "WARNING", use_json=False, stream=sys.stderr)


def _run(
    runner: Callable[[QueryService], SearchOutcome],
    debug: bool,
    as_json: bool,
) -> None:
    service = deps.get_query_service()
    try:
        outcome = runner(service)
    except QueryTooShortError as exc:
        typer.echo(f"Usage error: {exc}", err=True)
        raise typer.Exit(code=USAGE_EXIT_CODE)
    if as_json:
        payload = SearchResponse.from_outcome(outcome, debug=debug).model_dump(exclude_none=True)
        typer.echo(json.dumps(payload, indent=2))
        return
    if debug:
        typer.echo("Queries:")
        for idx, variant in enumerate(outcome.queries):
            marker = "original" if idx == 0 else f"variant {idx}"
            typer.echo(f"  [{marker}] {variant}")
        if outcome.mode == "query":
            typer.echo(f"Fused candidates: {outcome.fused_count}")
        typer.echo("")
    if outcome.is_empty:
        typer.echo("No results.")
        return
    for candidate in outcome.results:
        typer.echo(f"{candidate.score:.4f}  {candidate.path}  {candidate.title}")
        typer.echo(f"        {preview(candidate.body, width=100)}")


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    n: int = typer.Option(10, "-n", "--limit", min=1, help="Number of results to return"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Full-text (BM25) search."""
    _run(lambda service: service.search(q, k=n), debug=False, as_json=as_json)


@app.command()
def vsearch(
    q: str = typer.Argument(..., help="Query text"),
    n: int = typer.Option(10, "-n", "--limit", min=1, help="Number of results to return"),
    debug: bool = typer.Option(False, "--debug", help="Show expanded queries"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Vector similarity search over the query and its expansions."""
    _run(lambda service: service.vsearch(q, k=n), debug=debug, as_json=as_json)


@app.command()
def query(
    q: str = typer.Argument(..., help="Query text"),
    n: int = typer.Option(10, "-n", "--limit", min=1, help="Number of results to return"),
    debug: bool = typer.Option(False, "--debug", help="Show expanded queries and fusion size"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    """Hybrid search: expansion, fusion, and LLM reranking."""
    _run(lambda service: service.query(q, k=n), debug=debug, as_json=as_json)


@app.command()
def index(
    path: Path = typer.Argument(Path("."), help="Directory to index"),
    drop: bool = typer.Option(False, "--drop", help="Remove the collection instead"),
) -> None:
    """Index .md/.txt files under a directory as a collection."""
    pipeline = deps.get_index_pipeline()
    root = path.expanduser().resolve()
    if drop:
        if pipeline.drop_collection(root.name):
            typer.echo(f'Dropped collection "{root.name}"')
        else:
            typer.echo(f'No collection named "{root.name}"', err=True)
            raise typer.Exit(code=1)
        return
    try:
        stats = pipeline.index_path(root)
    except NotADirectoryError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(
        f'Indexed {stats.indexed} files ({stats.unchanged} unchanged, {stats.unembedded} without embeddings), '
        f'removed {stats.removed} files in collection "{stats.collection}"'
    )


@app.command()
def collections() -> None:
    """List indexed collections."""
    infos = deps.get_index_pipeline().list_collections()
    if not infos:
        typer.echo("No collections. Use 'index <path>' to create one.")
        return
    for info in infos:
        typer.echo(f"{info.name} ({info.doc_count} docs) - {info.path}")


@app.command()
def update() -> None:
    """Re-index every collection."""
    pipeline = deps.get_index_pipeline()
    if not pipeline.list_collections():
        typer.echo("No collections to update.")
        return
    for stats in pipeline.update_all():
        typer.echo(
            f'{stats.collection}: indexed {stats.indexed}, unchanged {stats.unchanged}, removed {stats.removed}'
        )


if __name__ == "__main__":
    app()
