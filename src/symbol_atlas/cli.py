"""CLI entrypoint for Symbol Atlas."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from loguru import logger

app = typer.Typer(
    name="symatlas",
    help="Symbol Atlas — ranked, paged search over a scripting API's symbols.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Output mode
# ---------------------------------------------------------------------------


@dataclass
class OutputMode:
    json: bool = False
    quiet: bool = False
    verbose: int = 0

    @property
    def log_level(self) -> str:
        if self.quiet or self.json:
            return "ERROR"
        if self.verbose >= 1:
            return "DEBUG"
        return "INFO"


_output = OutputMode()


def _configure_logging(mode: OutputMode) -> None:
    """Re-add the stderr sink at the level *mode* asks for."""
    logger.remove()
    logger.add(sys.stderr, level=mode.log_level, format="<level>{level: <8}</level> {message}")


def _emit(payload: dict[str, Any], lines: list[str]) -> None:
    """Print *payload* as JSON in ``--json`` mode, else the human-readable *lines*."""
    if _output.json:
        typer.echo(json.dumps(payload, indent=2))
        return
    if _output.quiet:
        return
    for line in lines:
        typer.echo(line)


@app.callback()
def main(
    json_output: bool = typer.Option(False, "--json", help="Print machine-readable JSON."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all non-error output."),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity."),
) -> None:
    """Global output options."""
    _output.json = json_output
    _output.quiet = quiet
    _output.verbose = verbose
    _configure_logging(_output)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

_DB_HELP = "JSON symbol dump (default: SYMATLAS_DATABASE__PATH or symatlas.toml)."


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query; spaces are ordered wildcards, '|' separates alternatives."),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),
    index: int = typer.Option(0, "--index", "-i", help="Start index of the page."),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Page size (default from settings)."),
    kind: list[str] | None = typer.Option(None, "--kind", "-k", help="Kind filter (repeatable)."),
    source: str = typer.Option("both", "--source", help="Source filter: native, script, both."),
    regex: bool = typer.Option(False, "--regex", help="Treat the query as a label regex."),
    signature: str | None = typer.Option(None, "--signature", help="Regex applied to parsed signatures."),
    docs: bool = typer.Option(False, "--docs", help="Include documentation in results."),
) -> None:
    """Search API symbols."""
    from symbol_atlas.search.engine import SearchRequest

    request = SearchRequest(
        query=query,
        search_index=index,
        max_batch_results=limit,
        include_docs=docs,
        kinds=kind or (),
        label_query_use_regex=regex,
        signature_regex=signature,
        source=source,
    )
    asyncio.run(_run_search(request, db))


@app.command()
def details(
    data: str = typer.Argument(..., help="The 'data' object of a search result, as JSON."),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),
) -> None:
    """Show the signature and documentation of one symbol."""
    asyncio.run(_run_details(data, db))


@app.command("list")
def list_(
    root: str = typer.Argument("", help="Namespace to browse (empty for the top level)."),
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),
) -> None:
    """Browse the namespace tree."""
    from symbol_atlas.search.walker import list_namespace

    app_ctx = _load_context(db)
    listing = list_namespace(app_ctx.database, root)
    _emit(
        {"root": root, "items": [{"label": r.label, "type": r.kind.value} for r in listing]},
        [f"{r.kind.value:<10} {r.label}" for r in listing] or [f"Nothing under '{root}'"],
    )


@app.command()
def mcp(
    db: Path | None = typer.Option(None, "--db", help=_DB_HELP),
    transport: str = typer.Option("stdio", "--transport", "-t", help="Transport: stdio, streamable-http"),
) -> None:
    """Start the MCP server for AI agent connections."""
    from symbol_atlas.server.mcp import create_mcp_server

    settings = _load_settings(db)
    server = create_mcp_server(settings)
    logger.info("Starting MCP server (transport={})", transport)
    server.run(transport=transport)  # type: ignore[arg-type]  # typer gives str, FastMCP expects Literal


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(db: Path | None):
    from symbol_atlas.settings import AtlasSettings

    if db is None:
        return AtlasSettings()
    return AtlasSettings(database={"path": db})


def _load_context(db: Path | None):
    from symbol_atlas.server.mcp import build_app_context

    settings = _load_settings(db)
    try:
        return build_app_context(settings)
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Cannot load symbol database {} — {}", settings.database.path, exc)
        raise typer.Exit(code=1) from exc


async def _run_search(request, db: Path | None) -> None:
    """Async implementation of the ``symatlas search`` command."""
    from symbol_atlas.search.engine import ApiSearchError, build_search_page, to_error_payload

    app_ctx = _load_context(db)
    try:
        page = await build_search_page(
            request,
            symbols=app_ctx.symbols,
            details=app_ctx.details,
            cache=app_ctx.cache,
            settings=app_ctx.settings.search,
        )
    except ApiSearchError as exc:
        if _output.json:
            typer.echo(json.dumps(to_error_payload(exc), indent=2))
        logger.error("{}: {}", exc.code, exc.message)
        raise typer.Exit(code=1) from exc

    lines = []
    for i, item in enumerate(page.items, page.start_index):
        signature = " ".join(item.signature.split())
        lines.append(f"{i}. {signature} ({item.type})")
    if not page.items:
        lines = [f"No results found for '{request.query}'"]
    elif page.next_start_index is not None:
        lines.append(f"... {page.remaining_count} more (--index {page.next_start_index})")
    _emit({"ok": True, "data": page.to_dict()}, lines)


async def _run_details(raw: str, db: Path | None) -> None:
    """Async implementation of the ``symatlas details`` command."""
    from symbol_atlas.schema import payload_from_data
    from symbol_atlas.search.details import DetailFetcher

    try:
        payload = payload_from_data(json.loads(raw))
    except (ValueError, TypeError) as exc:
        logger.error("Invalid symbol data — {}", exc)
        raise typer.Exit(code=1) from exc

    app_ctx = _load_context(db)
    fetcher = DetailFetcher(app_ctx.details, concurrency=app_ctx.settings.search.detail_concurrency)
    [detail] = await fetcher.fetch([payload])
    if not detail.signature:
        logger.error("Symbol not found")
        raise typer.Exit(code=1)
    lines = [detail.signature] if detail.docs is None else [detail.signature, detail.docs]
    _emit({"signature": detail.signature, "docs": detail.docs}, lines)


if __name__ == "__main__":
    app()
