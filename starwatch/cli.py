"""
CLI interface for starwatch.

Usage:
    starwatch schema
    starwatch sync [--skip-enrich] [--force] [--refresh]
    starwatch search "vector databases in rust" -k 5 --sort "stars desc"
    starwatch stats
"""

import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .cache import SnapshotCache
from .config import SyncConfig, load_or_create_config
from .embedding_batch import EmbeddingBatcher
from .enrichment import CancelToken
from .errors import StarwatchError, SyncCancelled, log_exception
from .github import StarListClient
from .item_store import ItemStore
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .pipeline import SyncOptions, SyncPipeline
from .providers import get_registry
from .query import DEFAULT_FIELDS, parse_fields, parse_sort
from .types import SearchOptions


app = typer.Typer(
    name="starwatch",
    help="GitHub star list → local store with AI enrichment",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode=None,
)

_state: dict = {"home": None}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
    )] = False,
    home: Annotated[Optional[Path], typer.Option(
        "--home",
        envvar="STARWATCH_HOME",
        help="Directory holding starwatch.toml, the database and the cache",
    )] = None,
):
    """Sync a GitHub star list into a searchable store."""
    if verbose:
        enable_debug_mode()
    else:
        configure_quiet_mode()
    _state["home"] = home


def _load_config() -> SyncConfig:
    try:
        return load_or_create_config(_state["home"])
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _fail(exc: Exception, context: str) -> None:
    """Log the traceback to the error log and exit with a short message."""
    log_path = log_exception(exc, context)
    typer.echo(f"Error: {exc}", err=True)
    typer.echo(f"(details in {log_path})", err=True)
    raise typer.Exit(1)


def _open_store(config: SyncConfig) -> ItemStore:
    return ItemStore(config.db_path, embedding_dimension=config.embedding_dimension)


@app.command()
def schema():
    """Initialize or update the store schema."""
    config = _load_config()
    try:
        with _open_store(config) as store:
            store.init_schema()
    except StarwatchError as e:
        _fail(e, "schema")
    typer.echo("Schema initialized")


@app.command()
def sync(
    skip_enrich: Annotated[bool, typer.Option(
        "--skip-enrich", help="Fetch and store only (no AI calls)",
    )] = False,
    force: Annotated[bool, typer.Option(
        "--force", help="Re-enrich and re-embed all repos",
    )] = False,
    refresh: Annotated[bool, typer.Option(
        "--refresh", help="Re-fetch from GitHub (ignores cache)",
    )] = False,
):
    """Fetch the star list, enrich with AI, store locally."""
    config = _load_config()
    ops_handler = configure_ops_log(config.path)

    cancel = CancelToken()

    def _on_interrupt(signum, frame):
        typer.echo("\nCancelling... (press Ctrl-C again to abort)", err=True)
        cancel.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, _on_interrupt)
    try:
        with StarListClient(config.github_token, config.star_list_id) as source, \
                _open_store(config) as store:
            pipeline = SyncPipeline(source, store, SnapshotCache(config.cache_path), config=config)
            pipeline.run(
                SyncOptions(
                    skip_enrichment=skip_enrich,
                    force_reenrich=force,
                    force_refetch=refresh,
                ),
                cancel=cancel,
            )
    except SyncCancelled:
        typer.echo("Sync cancelled; re-run to resume", err=True)
        raise typer.Exit(130)
    except (StarwatchError, ValueError, RuntimeError) as e:
        _fail(e, "sync")
    finally:
        signal.signal(signal.SIGINT, previous)
        logging.getLogger("starwatch").removeHandler(ops_handler)
        ops_handler.close()


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search query text")],
    k: Annotated[int, typer.Option("--k", "-k", min=1, help="Number of results")] = 10,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON array")] = False,
    fields: Annotated[str, typer.Option(
        "--fields", help="Comma-separated field names",
    )] = ",".join(DEFAULT_FIELDS),
    sort: Annotated[str, typer.Option(
        "--sort", help="Comma-separated 'field [asc|desc]' clauses",
    )] = "score desc",
):
    """Semantic similarity search across repos."""
    # Validate before any remote call
    try:
        field_list = parse_fields(fields)
        sort_specs = parse_sort(sort)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)

    config = _load_config()
    try:
        cfg = config.embedding
        embedder = get_registry().create_embedding(cfg.name, cfg.params)
        vector = EmbeddingBatcher(embedder).embed_query(query)
        with _open_store(config) as store:
            results = store.search(
                vector, SearchOptions(k=k, fields=field_list, sort=sort_specs)
            )
    except (StarwatchError, ValueError, RuntimeError) as e:
        _fail(e, "search")

    if output_json:
        typer.echo(json.dumps(results, indent=2, ensure_ascii=False))
        return

    if not results:
        typer.echo("No results found")
        return

    typer.echo(f"Top {len(results)} results for {query!r}:\n")
    for i, row in enumerate(results, start=1):
        header = f"{i}. {row.get('full_name', '')}  ({row.get('score') or 0.0:.3f})"
        if row.get("stars") is not None:
            header += f"  ★ {row['stars']}"
        typer.echo(header)
        if row.get("url"):
            typer.echo(f"   {row['url']}")
        if row.get("ai_summary"):
            typer.echo(f"   {row['ai_summary']}")
        if row.get("ai_categories"):
            typer.echo(f"   Tags: {', '.join(row['ai_categories'])}")
        extra = [f for f in field_list if f not in (
            "full_name", "score", "stars", "url", "ai_summary", "ai_categories",
        )]
        for f in extra:
            if row.get(f) is not None:
                typer.echo(f"   {f}: {row[f]}")
        typer.echo()


@app.command()
def stats():
    """Show repo counts and category breakdown."""
    config = _load_config()
    try:
        with _open_store(config) as store:
            counts = store.stats()
            categories = store.category_breakdown()
    except StarwatchError as e:
        _fail(e, "stats")

    typer.echo(f"Repos:    {counts.total}")
    typer.echo(f"Enriched: {counts.enriched}")
    typer.echo(f"Embedded: {counts.embedded}")

    if categories:
        typer.echo("\nCategory breakdown:")
        for name, count in sorted(categories.items(), key=lambda kv: (-kv[1], kv[0])):
            typer.echo(f"  {name:<20} {count}")


@app.command("config")
def show_config():
    """Show the resolved configuration (secrets omitted)."""
    config = _load_config()

    def _public(params: dict) -> dict:
        return {k: v for k, v in params.items() if k != "api_key"}

    typer.echo(f"Config:        {config.config_path}")
    typer.echo(f"Database:      {config.db_path}")
    typer.echo(f"Cache:         {config.cache_path}")
    typer.echo(f"Star list:     {config.star_list_id or '(not set)'}")
    typer.echo(f"GitHub token:  {'set' if config.github_token else '(not set)'}")
    typer.echo(f"Summarization: {config.summarization.name} {_public(config.summarization.params)}")
    typer.echo(f"Embedding:     {config.embedding.name} {_public(config.embedding.params)}")
    typer.echo(f"Dimension:     {config.embedding_dimension}")


if __name__ == "__main__":
    sys.exit(app())
