# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Discovery tools: list streams and fields."""
import json

import httpx

from mcp.server.fastmcp import FastMCP
from graylog_mcp.graylog import GraylogAPIError, GraylogClient
from graylog_mcp.tools.logs.params import upstream_error


def register_catalog_tools(mcp: FastMCP, client: GraylogClient) -> None:
    """Register the list_streams and list_fields tools with the MCP server.

    Args:
        mcp (FastMCP): The MCP server instance to register the tools with.
        client (GraylogClient): Shared Graylog client.
    """

    @mcp.tool()
    async def list_streams(title_filter: str = "") -> str:
        """List available Graylog streams. Streams organize log messages into categories.

        Args:
            title_filter: Optional case-insensitive substring filter for
                stream titles.

        Returns:
            str: JSON string with enabled streams (id, title, description,
                index set) and their total. On error, a JSON string with an
                error message.
        """
        try:
            raw_streams = await client.get_streams()
        except (GraylogAPIError, httpx.HTTPError) as e:
            return upstream_error("Get streams", e)

        needle = title_filter.lower()
        streams = [
            {
                "id": s.get("id", ""),
                "title": s.get("title", ""),
                "description": s.get("description", ""),
                "index_set_id": s.get("index_set_id", ""),
            }
            for s in raw_streams
            if not s.get("disabled") and needle in (s.get("title") or "").lower()
        ]
        return json.dumps({"streams": streams, "total": len(streams)}, ensure_ascii=False)

    @mcp.tool()
    async def list_fields(name_filter: str = "") -> str:
        """List available log field names in Graylog. Useful for discovering queryable fields.

        Args:
            name_filter: Optional case-insensitive substring filter for
                field names.

        Returns:
            str: JSON string with the sorted field names and their total.
                On error, a JSON string with an error message.
        """
        try:
            names = await client.get_fields()
        except (GraylogAPIError, httpx.HTTPError) as e:
            return upstream_error("Get fields", e)

        needle = name_filter.lower()
        fields = sorted(name for name in names if needle in name.lower())
        return json.dumps({"fields": fields, "total": len(fields)}, ensure_ascii=False)
