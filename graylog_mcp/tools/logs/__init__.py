# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Log domain tools: search, context, aggregate, streams, fields."""

from mcp.server.fastmcp import FastMCP

from graylog_mcp.config import settings
from graylog_mcp.graylog import GraylogClient
from graylog_mcp.tools.logs.aggregate import register_aggregate_logs
from graylog_mcp.tools.logs.catalog import register_catalog_tools
from graylog_mcp.tools.logs.context import register_get_log_context
from graylog_mcp.tools.logs.search import register_search_logs


def register_log_tools(mcp: FastMCP) -> None:
    """Register all log-domain tools with the MCP server.

    Args:
        mcp (FastMCP): The MCP server instance to register tools with.
    """
    # One connection pool shared by every tool
    client = GraylogClient.from_settings(settings)

    register_search_logs(mcp, client)
    register_get_log_context(mcp, client)
    register_aggregate_logs(mcp, client)
    register_catalog_tools(mcp, client)
