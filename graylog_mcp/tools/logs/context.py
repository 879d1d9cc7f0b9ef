# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Log context tool: messages surrounding a specific message."""
import logging
from typing import Any, Optional

import httpx

from mcp.server.fastmcp import FastMCP
from graylog_mcp.common.context import assemble_context
from graylog_mcp.common.fitting import ResultShaper
from graylog_mcp.common.models import BODY_FIELD, ContextWindow, IndexedMessage
from graylog_mcp.common.projection import parse_field_list, project, truncate_text
from graylog_mcp.config import settings
from graylog_mcp.graylog import GraylogAPIError, GraylogClient
from graylog_mcp.tools.logs.params import (
    ToolInputError,
    error_response,
    fitted_response,
    non_negative,
    require,
    upstream_error,
)

logger = logging.getLogger(__name__)


def _shrink_side(entries: list) -> list:
    """Halve a context side, keeping at least one entry while non-empty."""
    if not entries:
        return entries
    return entries[:max(len(entries) // 2, 1)]


class ContextShaper(ResultShaper):
    """Context window: ``{target_message, messages_before, messages_after, context_incomplete}``."""

    def truncate_content(self, max_len: int) -> None:
        entries = [self.payload["target_message"]]
        entries += self.payload["messages_before"]
        entries += self.payload["messages_after"]
        for entry in entries:
            fields = entry["message"]
            if isinstance(fields.get(BODY_FIELD), str):
                fields[BODY_FIELD] = truncate_text(fields[BODY_FIELD], max_len)

    def reduce_count(self) -> bool:
        before = self.payload["messages_before"]
        after = self.payload["messages_after"]
        if len(before) + len(after) <= 2:
            return False
        self.payload["messages_before"] = _shrink_side(before)
        self.payload["messages_after"] = _shrink_side(after)
        self.payload["context_incomplete"] = True
        return True

    def fallback(self) -> dict[str, Any]:
        target = self.payload["target_message"]
        metadata = {
            "target_message_id": target["message"].get("_id", ""),
            "target_timestamp": target["message"].get("timestamp", ""),
            "target_index": target["index"],
            "context_incomplete": self.payload["context_incomplete"],
            "has_more": True,
            "response_truncated": True,
            "error": "Context response too large even after truncation. "
                     "Reduce 'before'/'after' or use 'fields' to limit payload size.",
        }
        for key in ("before_error", "after_error"):
            if key in self.payload:
                metadata[key] = self.payload[key]
        return metadata


def _entry(item: IndexedMessage, fields: list[str]) -> dict[str, Any]:
    return {"message": project(item.message, fields), "index": item.index}


def build_context_result(window: ContextWindow, fields: list[str]) -> dict[str, Any]:
    """Render a context window with every message projected the same way."""
    result: dict[str, Any] = {
        "target_message": _entry(window.target, fields),
        "messages_before": [_entry(m, fields) for m in window.before],
        "messages_after": [_entry(m, fields) for m in window.after],
        "context_incomplete": window.incomplete,
    }
    if window.before_error is not None:
        result["before_error"] = window.before_error
    if window.after_error is not None:
        result["after_error"] = window.after_error
    return result


def register_get_log_context(mcp: FastMCP, client: GraylogClient) -> None:
    """Register the get_log_context tool with the MCP server.

    Args:
        mcp (FastMCP): The MCP server instance to register the tool with.
        client (GraylogClient): Shared Graylog client.
    """

    @mcp.tool()
    async def get_log_context(
        message_id: str,
        index: str,
        before: Optional[int] = None,
        after: Optional[int] = None,
        fields: str = "",
        stream_id: str = "",
        max_result_size: Optional[int] = None,
    ) -> str:
        """Get the log messages surrounding a specific message. Useful for understanding the context of an event.

        Args:
            message_id: The _id of the target message.
            index: The Elasticsearch index of the target message.
            before: Number of messages to fetch before the target (default 5, max 500).
            after: Number of messages to fetch after the target (default 5, max 500).
            fields: Comma-separated list of fields to return.
            stream_id: Optional stream ID to restrict the context search to.
            max_result_size: Maximum response size in bytes (default 50000,
                0 = no limit).

        Returns:
            str: JSON string with the target message, the messages before
                and after it in chronological order, and a
                context_incomplete flag. On error, a JSON string with an
                error message.
        """
        try:
            message_id = require(message_id, "message_id")
            index = require(index, "index")
            count_before = min(non_negative(before, "before", 5), settings.CONTEXT_MAX_PER_SIDE)
            count_after = min(non_negative(after, "after", 5), settings.CONTEXT_MAX_PER_SIDE)
            max_size = non_negative(max_result_size, "max_result_size", settings.DEFAULT_MAX_RESULT_SIZE)
        except ToolInputError as e:
            return error_response(str(e))

        try:
            target = await client.get_message(index, message_id)
        except (GraylogAPIError, httpx.HTTPError) as e:
            return upstream_error("Get message", e)

        field_list = parse_field_list(fields)
        window = await assemble_context(
            client,
            target,
            count_before,
            count_after,
            fields=field_list,
            stream_ids=[stream_id] if stream_id else None,
            overfetch_multiplier=settings.CONTEXT_OVERFETCH_MULTIPLIER,
            max_fetch_per_side=settings.CONTEXT_MAX_FETCH_PER_SIDE,
        )

        return fitted_response(ContextShaper(build_context_result(window, field_list)), max_size)
