"""Tests for the MCP server tools."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.server.fastmcp import FastMCP

from symbol_atlas.server.mcp import (
    AppContext,
    _register_browse_tools,
    _register_search_tools,
    build_app_context,
    create_mcp_server,
)

# ---------------------------------------------------------------------------
# Fake context for direct tool invocation
# ---------------------------------------------------------------------------


class _FakeRequestContext:
    def __init__(self, app_ctx: AppContext) -> None:
        self.lifespan_context = app_ctx


class _FakeCtx:
    """Minimal stand-in for mcp.server.fastmcp.Context."""

    def __init__(self, app_ctx: AppContext) -> None:
        self.request_context = _FakeRequestContext(app_ctx)


async def _invoke_tool(app_ctx: AppContext, tool_name: str, **kwargs: Any) -> dict[str, Any]:
    """Invoke an MCP tool function directly, bypassing the MCP transport layer."""
    server = FastMCP(name="test")
    _register_search_tools(server)
    _register_browse_tools(server)

    tool_map = {tool.name: tool for tool in server._tool_manager._tools.values()}
    if tool_name not in tool_map:
        msg = f"Unknown tool: {tool_name}. Available: {sorted(tool_map)}"
        raise ValueError(msg)

    kwargs["ctx"] = _FakeCtx(app_ctx)
    return await tool_map[tool_name].fn(**kwargs)


@pytest.fixture
def app_ctx(settings, sample_db):
    return build_app_context(settings, sample_db)


def _error_code(result: dict[str, Any]) -> str:
    assert result["ok"] is False
    return result["error"]["code"]


# ---------------------------------------------------------------------------
# Server wiring
# ---------------------------------------------------------------------------


class TestServerWiring:
    def test_tools_registered(self, settings):
        server = create_mcp_server(settings)
        names = {tool.name for tool in server._tool_manager._tools.values()}
        assert names == {"search_api", "clear_search_cache", "get_api_details", "list_api"}

    def test_context_from_settings(self, settings):
        app = build_app_context(settings)
        assert app.database.lookup_namespace("Math") is None
        assert app.cache.ttl_s == settings.search.cache_ttl_s
        assert app.details.supports_batch is True

    def test_context_loads_database_path(self, settings, tmp_path):
        dump = {"namespaces": [{"name": "Math", "globals": [{"name": "PI", "type": "float64"}]}]}
        path = tmp_path / "symbols.json"
        path.write_text(json.dumps(dump), encoding="utf-8")
        settings.database.path = path
        app = build_app_context(settings)
        assert app.database.lookup_global_symbols("Math::PI")


# ---------------------------------------------------------------------------
# search_api
# ---------------------------------------------------------------------------


class TestSearchApi:
    async def test_envelope(self, app_ctx):
        result = await _invoke_tool(app_ctx, "search_api", label_query="GetActor")
        assert result["ok"] is True
        data = result["data"]
        assert data["query"] == "GetActor"
        assert data["searchIndex"] == 0
        assert data["nextSearchIndex"] is None
        assert data["total"] == 2
        assert data["items"][0]["signature"] == "FVector AActor.GetActorLocation()"
        assert "docs" not in data["items"][0]

    async def test_include_docs(self, app_ctx):
        result = await _invoke_tool(app_ctx, "search_api", label_query="GetActorLocation", include_docs=True)
        assert result["data"]["items"][0]["docs"] == "World location of the actor."

    async def test_paging(self, app_ctx):
        first = await _invoke_tool(app_ctx, "search_api", label_query="GetActor", max_batch_results=1)
        assert first["data"]["nextSearchIndex"] == 1
        assert first["data"]["remainingCount"] == 1
        second = await _invoke_tool(
            app_ctx, "search_api", label_query="GetActor", search_index=1, max_batch_results=1
        )
        assert second["data"]["nextSearchIndex"] is None
        assert second["data"]["items"][0]["signature"].startswith("AActor Gameplay::GetActorOfClass(")

    async def test_kinds_filter(self, app_ctx):
        result = await _invoke_tool(app_ctx, "search_api", label_query="Actor", kinds=["class"])
        items = result["data"]["items"]
        assert items
        assert {item["type"] for item in items} == {"type"}
        assert {item["data"]["type_kind"] for item in items} == {"class"}

    @pytest.mark.parametrize("query", ["", "   "])
    async def test_missing_query(self, app_ctx, query):
        result = await _invoke_tool(app_ctx, "search_api", label_query=query)
        assert _error_code(result) == "MISSING_LABEL_QUERY"

    async def test_invalid_page_size(self, app_ctx):
        result = await _invoke_tool(app_ctx, "search_api", label_query="Actor", max_batch_results=0)
        assert _error_code(result) == "INVALID_MAX_BATCH_RESULTS"

    async def test_index_out_of_range(self, app_ctx):
        result = await _invoke_tool(app_ctx, "search_api", label_query="GetActor", search_index=5)
        assert _error_code(result) == "INVALID_SEARCH_INDEX"
        assert result["error"]["details"]["validRange"] == {"min": 0, "max": 1}

    async def test_provider_failure_is_internal_error(self, app_ctx):
        app_ctx.symbols = AsyncMock()
        app_ctx.symbols.search.side_effect = RuntimeError("index offline")
        result = await _invoke_tool(app_ctx, "search_api", label_query="Actor")
        assert _error_code(result) == "INTERNAL_ERROR"
        assert "index offline" in result["error"]["message"]

    async def test_client_cancellation_propagates(self, app_ctx):
        started = asyncio.Event()

        async def _hang(_query):
            started.set()
            await asyncio.Event().wait()

        app_ctx.symbols = MagicMock()
        app_ctx.symbols.search = AsyncMock(side_effect=_hang)
        app_ctx.details = MagicMock()
        app_ctx.details.get_details_batch = AsyncMock()

        task = asyncio.create_task(_invoke_tool(app_ctx, "search_api", label_query="Actor"))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        app_ctx.details.get_details_batch.assert_not_awaited()
        assert len(app_ctx.cache) == 0

    async def test_clear_cache(self, app_ctx):
        await _invoke_tool(app_ctx, "search_api", label_query="GetActor")
        await _invoke_tool(app_ctx, "search_api", label_query="PI")
        result = await _invoke_tool(app_ctx, "clear_search_cache")
        assert result == {"ok": True, "data": {"cleared": 2}}
        assert len(app_ctx.cache) == 0


# ---------------------------------------------------------------------------
# get_api_details / list_api
# ---------------------------------------------------------------------------


class TestGetApiDetails:
    async def test_details_from_search_item(self, app_ctx):
        search = await _invoke_tool(app_ctx, "search_api", label_query="SetActorLocation")
        data = search["data"]["items"][0]["data"]
        result = await _invoke_tool(app_ctx, "get_api_details", data=data)
        assert result["ok"] is True
        assert result["data"]["signature"].startswith("bool AActor.SetActorLocation(")
        assert result["data"]["docs"] is None

    async def test_invalid_data(self, app_ctx):
        result = await _invoke_tool(app_ctx, "get_api_details", data={"tag": "macro"})
        assert _error_code(result) == "INVALID_DATA"
        assert result["error"]["details"] == {"receivedData": {"tag": "macro"}}

    async def test_unknown_symbol_has_empty_signature(self, app_ctx):
        result = await _invoke_tool(app_ctx, "get_api_details", data={"tag": "global", "qualified_name": "Nope"})
        assert result["data"] == {"signature": "", "docs": None}


class TestListApi:
    async def test_root(self, app_ctx):
        result = await _invoke_tool(app_ctx, "list_api")
        labels = [item["label"] for item in result["data"]["items"]]
        assert labels == ["ActorExtensions::", "Gameplay::", "Math::"]
        assert result["data"]["items"][0]["type"] == "namespace"

    async def test_namespace(self, app_ctx):
        result = await _invoke_tool(app_ctx, "list_api", root="Math")
        assert result["data"]["root"] == "Math"
        labels = [item["label"] for item in result["data"]["items"]]
        assert "PI" in labels
        assert "Abs()" in labels

    async def test_listed_data_feeds_details(self, app_ctx):
        listing = await _invoke_tool(app_ctx, "list_api", root="Math")
        [pi] = [item for item in listing["data"]["items"] if item["label"] == "PI"]
        result = await _invoke_tool(app_ctx, "get_api_details", data=pi["data"])
        assert result["data"]["signature"] == "float64 Math::PI"
