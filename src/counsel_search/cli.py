#!/usr/bin/env python3
"""
CLI for the counsel hybrid search engine.

Searches the local work-item corpus and prints results in a compact, colorful
format with scores, contributing engines and snippets.
"""

import asyncio
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from .config import load_config
from .errors import InvalidQueryParameters
from .orchestrator import HybridSearchOrchestrator
from .schema import Category, EngineStatusSet, HybridResult, HybridSearchResponse
from .snippet import highlight_matches

console = Console()

DEFAULT_LIMIT = 10


def get_rank_label(rank: int) -> str:
    """Medal for the top three results, a number otherwise."""
    rank_labels = {1: "🥇", 2: "🥈", 3: "🥉"}
    return rank_labels.get(rank, f"{rank}.")


def display_search_result(result: HybridResult, rank: int, query: str):
    """Display a single hybrid result."""
    header = Text()
    header.append(f"{get_rank_label(rank)} ", style="bold")
    header.append(result.title, style="bold white")
    header.append(f"  Score: {result.score:.3f}", style="cyan")
    header.append(f"  [{', '.join(engine.value for engine in result.engines)}]", style="magenta")
    console.print(header)

    location = Text()
    location.append("📁 ", style="bold blue")
    location.append(f"{result.category.value}/{result.work_item}/{result.file_name}", style="blue")
    console.print(location)

    if result.snippet:
        snippet = highlight_matches(result.snippet, query.split())
        console.print(Text(f"   {snippet}", style="dim"), highlight=False)

    console.print()


def display_status(status: EngineStatusSet):
    """Engine availability table."""
    table = Table(title="Engine status", show_header=True, header_style="bold")
    table.add_column("Engine")
    table.add_column("Available")
    table.add_column("Detail", style="dim")

    for name in ("vector", "keyword", "fuzzy"):
        engine_status = getattr(status, name)
        available = "✅" if engine_status.available else "❌"
        table.add_row(name, available, engine_status.error or "")

    console.print(table)


def display_response(response: HybridSearchResponse):
    header_text = f"📊 Found {len(response.results)} results in {response.execution_time_ms}ms"
    console.print(header_text, style="bold green")
    console.print(response.status.summary(), style="dim")
    console.print(Rule(style="green"))
    console.print()

    if not response.results:
        console.print("🔍 No results found. Try a different query.", style="yellow")
        return

    for rank, result in enumerate(response.results, 1):
        display_search_result(result, rank, response.query)


def build_orchestrator(config_path: Optional[str], no_vector: bool) -> HybridSearchOrchestrator:
    config = load_config(config_path)
    if no_vector:
        config.vector.enabled = False
    return HybridSearchOrchestrator(config)


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to search.yml (default: ~/.counsel/search.yml)")
@click.option("--no-vector", is_flag=True, help="Disable the semantic engine")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], no_vector: bool, verbose: bool):
    """Hybrid search over counsel work items."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = build_orchestrator(config_path, no_vector)
    except ValueError as e:
        console.print(f"❌ {e}", style="red")
        sys.exit(2)


@cli.command()
@click.argument("query")
@click.option("--category", "-c", type=click.Choice([c.value for c in Category]), default=None,
              help="Restrict to one category")
@click.option("--limit", "-n", default=DEFAULT_LIMIT, help=f"Number of results (default: {DEFAULT_LIMIT})")
@click.option("--threshold", "-t", type=float, default=None, help="Minimum vector similarity (0-1)")
@click.pass_obj
def search(orchestrator: HybridSearchOrchestrator, query: str, category: Optional[str],
           limit: int, threshold: Optional[float]):
    """Search the corpus with all available engines."""
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(description=f"🔍 Searching: '{query}'...", total=None)
            response = asyncio.run(orchestrator.search(query, category, limit, threshold))
    except InvalidQueryParameters as e:
        console.print(f"❌ Invalid query: {e}", style="red")
        sys.exit(2)

    display_response(response)

    if not response.results:
        related = orchestrator.get_related_terms(query)
        if related:
            console.print(f"💡 Related terms: {', '.join(related)}", style="cyan")


@cli.command()
@click.argument("partial_query")
@click.option("--limit", "-n", default=5, help="Number of suggestions")
@click.pass_obj
def suggest(orchestrator: HybridSearchOrchestrator, partial_query: str, limit: int):
    """Autocomplete suggestions for a partial query."""
    suggestions = orchestrator.get_suggestions(partial_query, limit)
    if not suggestions:
        console.print("No suggestions.", style="yellow")
        return
    for suggestion in suggestions:
        console.print(f"  • {suggestion}")


@cli.command()
@click.pass_obj
def status(orchestrator: HybridSearchOrchestrator):
    """Show engine availability and index statistics."""
    orchestrator.initialize()
    display_status(asyncio.run(orchestrator.get_engine_status()))

    stats = orchestrator.get_stats()
    console.print(f"Corpus: {stats['corpus_root']}", style="dim")
    console.print(f"Documents indexed: {stats['keyword']['total_documents']}", style="dim")
    console.print(f"Keyword terms: {stats['keyword']['total_terms']}", style="dim")


@cli.command("index-vectors")
@click.option("--recreate", is_flag=True, help="Drop and recreate the vector index")
@click.option("--batch-size", default=64, help="Documents per bulk request")
@click.pass_obj
def index_vectors(orchestrator: HybridSearchOrchestrator, recreate: bool, batch_size: int):
    """Embed the corpus and load it into the OpenSearch kNN index."""
    client = orchestrator.vector_client
    if client is None or not hasattr(client, "index_documents"):
        console.print("❌ Vector search is disabled", style="red")
        sys.exit(1)

    orchestrator.initialize()
    documents = orchestrator.documents
    if not documents:
        console.print("❌ No documents to index", style="red")
        return

    client.ensure_index(force_recreate=recreate)
    result = client.index_documents(documents, batch_size=batch_size)

    console.print(f"✅ Indexed {result['successful']}/{result['total']} documents", style="green")
    if result['errors']:
        console.print(f"⚠️  {result['failed']} failed (showing first 3):", style="yellow")
        for error in result['errors'][:3]:
            console.print(f"   - {error}", style="dim")


if __name__ == "__main__":
    cli()
