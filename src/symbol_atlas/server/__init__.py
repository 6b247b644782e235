"""Server package — MCP server."""

from __future__ import annotations

from symbol_atlas.server.mcp import AppContext, create_mcp_server

__all__ = ["AppContext", "create_mcp_server"]
