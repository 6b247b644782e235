"""MCP server for Symbol Atlas.

Exposes ranked, paged API-symbol search to AI coding agents via MCP tools.
Every tool answers with a JSON envelope: ``{"ok": True, "data": ...}`` on
success, ``{"ok": False, "error": {"code", "message", "details"?}}`` on failure.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from symbol_atlas.database import SymbolDatabase, load_database
from symbol_atlas.providers import LocalDetailProvider, LocalSymbolProvider
from symbol_atlas.schema import payload_from_data, payload_to_data
from symbol_atlas.search.cache import SearchCache
from symbol_atlas.search.details import DetailFetcher
from symbol_atlas.search.engine import ApiSearchError, SearchRequest, build_search_page, error_payload, to_error_payload
from symbol_atlas.search.walker import list_namespace

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from symbol_atlas.providers import DetailProvider, SymbolProvider
    from symbol_atlas.settings import AtlasSettings

# ---------------------------------------------------------------------------
# Application context
# ---------------------------------------------------------------------------


@dataclass
class AppContext:
    settings: AtlasSettings
    database: SymbolDatabase
    symbols: SymbolProvider
    details: DetailProvider
    cache: SearchCache


def build_app_context(settings: AtlasSettings, database: SymbolDatabase | None = None) -> AppContext:
    """Wire database, providers and cache from *settings*."""
    if database is None:
        path = settings.database.path
        database = load_database(path) if path is not None else SymbolDatabase()
    search = settings.search
    return AppContext(
        settings=settings,
        database=database,
        symbols=LocalSymbolProvider(database, rules=search.exclusion_rules()),
        details=LocalDetailProvider(database, batch=search.batch_details),
        cache=SearchCache(ttl_s=search.cache_ttl_s, capacity=search.cache_capacity),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_app_ctx(ctx: Context) -> AppContext:
    """Extract AppContext from the MCP request context."""
    return ctx.request_context.lifespan_context


def _ok(data: Any) -> dict[str, Any]:
    """Success envelope."""
    return {"ok": True, "data": data}


def _internal_error(tool: str, exc: Exception) -> dict[str, Any]:
    logger.error("{} failed: {}", tool, exc)
    return error_payload("INTERNAL_ERROR", f"{tool} failed: {exc}")


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_mcp_server(settings: AtlasSettings) -> FastMCP:
    """Create and configure the Symbol Atlas MCP server."""

    @asynccontextmanager
    async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
        app_ctx = build_app_context(settings)
        logger.info("MCP serving symbol database ({})", settings.database.path or "empty")
        try:
            yield app_ctx
        finally:
            app_ctx.cache.clear()
            logger.info("MCP server shut down")

    mcp = FastMCP(
        name="symbol-atlas",
        instructions=(
            "Symbol Atlas — ranked search over a scripting API's symbols. "
            "Use search_api to find classes, methods, properties and globals, "
            "get_api_details for one symbol's signature and docs, "
            "list_api to browse namespaces."
        ),
        lifespan=app_lifespan,
    )

    _register_search_tools(mcp)
    _register_browse_tools(mcp)
    return mcp


# ---------------------------------------------------------------------------
# Tool registration
# ---------------------------------------------------------------------------


def _register_search_tools(mcp: FastMCP) -> None:
    """Register search_api and clear_search_cache."""

    @mcp.tool(
        description=(
            "Search API symbols and docs. Spaces act as ordered wildcards: 'a b' matches a...b. "
            "'|' separates alternate queries (OR). '.' or '::' require those separators; "
            "adjacent to a word they must be adjacent in the name ('UObject.', 'Math::'). "
            "Optional kinds filter: class, struct, enum, method, function, property, globalVariable. "
            "Optional source filter: native, script, both (default). "
            "Paging uses search_index (start at 0) and max_batch_results (default 200); "
            "follow nextSearchIndex until it is null. "
            "label_query_use_regex applies label_query as a regex to labels; signature_regex filters "
            "parsed signatures. Both accept /pattern/flags; bare patterns ignore case."
        ),
    )
    async def search_api(
        label_query: str,
        search_index: int = 0,
        max_batch_results: int | None = None,
        include_docs: bool = False,
        kinds: list[str] | None = None,
        label_query_use_regex: bool = False,
        signature_regex: str | None = None,
        source: str = "both",
        ctx: Context = None,  # type: ignore[assignment]
    ) -> dict[str, Any]:
        if not label_query or not label_query.strip():
            return error_payload("MISSING_LABEL_QUERY", "label_query is required and must not be empty.")

        app = _get_app_ctx(ctx)
        request = SearchRequest(
            query=label_query,
            search_index=search_index,
            max_batch_results=max_batch_results,
            include_docs=include_docs,
            kinds=kinds or (),
            label_query_use_regex=label_query_use_regex,
            signature_regex=signature_regex,
            source=source,
        )
        # Client cancellation cancels this task. CancelledError is not an Exception and propagates.
        try:
            page = await build_search_page(
                request,
                symbols=app.symbols,
                details=app.details,
                cache=app.cache,
                settings=app.settings.search,
            )
        except ApiSearchError as exc:
            return to_error_payload(exc)
        except Exception as exc:
            return _internal_error("search_api", exc)
        return _ok(page.to_dict())

    @mcp.tool(description="Drop all cached search results so the next search recomputes rankings.")
    async def clear_search_cache(ctx: Context = None) -> dict[str, Any]:  # type: ignore[assignment]
        app = _get_app_ctx(ctx)
        dropped = len(app.cache)
        app.cache.clear()
        return _ok({"cleared": dropped})


def _register_browse_tools(mcp: FastMCP) -> None:
    """Register get_api_details and list_api."""

    @mcp.tool(
        description=(
            "Signature and documentation for one symbol. Pass the 'data' object of a search_api "
            "or list_api item unchanged."
        ),
    )
    async def get_api_details(data: dict[str, Any], ctx: Context = None) -> dict[str, Any]:  # type: ignore[assignment]
        try:
            payload = payload_from_data(data)
        except ValueError as exc:
            return error_payload("INVALID_DATA", str(exc), {"receivedData": data})

        app = _get_app_ctx(ctx)
        concurrency = app.settings.search.detail_concurrency
        try:
            [detail] = await DetailFetcher(app.details, concurrency=concurrency).fetch([payload])
        except Exception as exc:
            return _internal_error("get_api_details", exc)
        return _ok({"signature": detail.signature, "docs": detail.docs})

    @mcp.tool(
        description=(
            "Browse the API namespace tree. Empty root lists top-level namespaces; a namespace name "
            "('Math' or 'Outer::Inner') lists its child namespaces, functions and global variables."
        ),
    )
    async def list_api(root: str = "", ctx: Context = None) -> dict[str, Any]:  # type: ignore[assignment]
        app = _get_app_ctx(ctx)
        listing = list_namespace(app.database, root.strip())
        items = [
            {"label": result.label, "type": result.kind.value, "data": payload_to_data(result.payload)}
            for result in listing
        ]
        return _ok({"root": root.strip(), "items": items})
