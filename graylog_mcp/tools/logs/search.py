# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Log search tool.

Searches Graylog with a Lucene query and returns messages as-is, grouped by
identical content (deduplicate) or grouped by log template (templateize).
Every shape is fitted to the requested byte budget before it is returned.
"""
import logging
from typing import Any, Optional

import httpx

from mcp.server.fastmcp import FastMCP
from graylog_mcp.common.dedup import cap_message_ids, deduplicate
from graylog_mcp.common.fitting import ResultShaper
from graylog_mcp.common.models import BODY_FIELD, Batch, DedupGroup
from graylog_mcp.common.projection import parse_field_list, project, truncate_text
from graylog_mcp.common.templates import templateize
from graylog_mcp.config import settings
from graylog_mcp.graylog import GraylogAPIError, GraylogClient, SearchParams
from graylog_mcp.tools.logs.params import (
    ToolInputError,
    check_time_range,
    error_response,
    fitted_response,
    non_negative,
    require,
    upstream_error,
)

logger = logging.getLogger(__name__)


def _halve(entries: list) -> Optional[list]:
    """Return the first half of ``entries`` (at least one), or None if it can't shrink."""
    if len(entries) <= 1:
        return None
    return entries[:max(len(entries) // 2, 1)]


class MessagesShaper(ResultShaper):
    """Plain message list: ``{messages, total_results, limit, offset, has_more}``."""

    def truncate_content(self, max_len: int) -> None:
        for entry in self.payload["messages"]:
            fields = entry["message"]
            if isinstance(fields.get(BODY_FIELD), str):
                fields[BODY_FIELD] = truncate_text(fields[BODY_FIELD], max_len)

    def reduce_count(self) -> bool:
        reduced = _halve(self.payload["messages"])
        if reduced is None:
            return False
        self.payload["messages"] = reduced
        self.payload["has_more"] = True
        return True

    def fallback(self) -> dict[str, Any]:
        return {
            "total_results": self.payload["total_results"],
            "limit": self.payload["limit"],
            "offset": self.payload["offset"],
            "has_more": True,
            "response_truncated": True,
            "error": "Response too large even after truncation. Use 'fields' parameter to "
                     "select specific fields or 'truncate_message' to limit message size.",
        }


class DedupShaper(ResultShaper):
    """Deduplicated groups: ``{deduplicated, total_raw_results, unique_in_batch, ...}``."""

    def truncate_content(self, max_len: int) -> None:
        for entry in self.payload["deduplicated"]:
            fields = entry["message"]
            if isinstance(fields.get(BODY_FIELD), str):
                fields[BODY_FIELD] = truncate_text(fields[BODY_FIELD], max_len)

    def reduce_count(self) -> bool:
        reduced = _halve(self.payload["deduplicated"])
        if reduced is None:
            return False
        self.payload["deduplicated"] = reduced
        self.payload["has_more"] = True
        return True

    def fallback(self) -> dict[str, Any]:
        return {
            "total_raw_results": self.payload["total_raw_results"],
            "unique_in_batch": self.payload["unique_in_batch"],
            "limit": self.payload["limit"],
            "offset": self.payload["offset"],
            "has_more": True,
            "response_truncated": True,
            "error": "Response too large even after truncation. Use 'fields' parameter to "
                     "select specific fields or 'truncate_message' to limit message size.",
        }


class TemplatesShaper(ResultShaper):
    """Template groups: ``{templates, total_results, template_count}``."""

    def truncate_content(self, max_len: int) -> None:
        for entry in self.payload["templates"]:
            entry["template"] = truncate_text(entry["template"], max_len)

    def reduce_count(self) -> bool:
        reduced = _halve(self.payload["templates"])
        if reduced is None:
            return False
        self.payload["templates"] = reduced
        return True

    def fallback(self) -> dict[str, Any]:
        return {
            "total_results": self.payload["total_results"],
            "template_count": self.payload["template_count"],
            "response_truncated": True,
            "error": "Response too large even after truncation. "
                     "Use 'fields' parameter or reduce the search scope.",
        }


def _dedup_entry(group: DedupGroup, fields: list[str]) -> dict[str, Any]:
    return {
        "message": project(group.message, fields, include_id=False),
        "index": group.index,
        "count": group.count,
        "message_ids": group.message_ids,
    }


def build_messages_result(batch: Batch, params: SearchParams, fields: list[str]) -> dict[str, Any]:
    """Ungrouped result shape."""
    return {
        "messages": [
            {"message": project(item.message, fields), "index": item.index}
            for item in batch.messages
        ],
        "total_results": batch.total_results,
        "limit": params.limit,
        "offset": params.offset,
        "has_more": params.offset + params.limit < batch.total_results,
    }


def build_dedup_result(
    batch: Batch,
    limit: int,
    offset: int,
    fields: list[str],
    max_ids: int,
) -> dict[str, Any]:
    """Deduplicated result shape.

    The batch is fetched from offset 0; ``offset`` and ``limit`` page over the
    groups instead of the raw messages.
    """
    groups = deduplicate(batch.messages)
    unique = len(groups)
    # Capped before paging and fitting; fitting only drops whole groups.
    cap_message_ids(groups, max_ids)

    page = groups[offset:offset + limit]
    has_more = offset + limit < batch.total_results or unique > offset + len(page)
    return {
        "deduplicated": [_dedup_entry(g, fields) for g in page],
        "total_raw_results": batch.total_results,
        "unique_in_batch": unique,
        "limit": limit,
        "offset": offset,
        "has_more": has_more,
    }


def build_templates_result(batch: Batch, max_ids: int) -> dict[str, Any]:
    """Templated result shape."""
    groups = templateize(batch.messages, max_ids=max_ids)
    return {
        "templates": [g.to_dict() for g in groups],
        "total_results": batch.total_results,
        "template_count": len(groups),
    }


def register_search_logs(mcp: FastMCP, client: GraylogClient) -> None:
    """Register the search_logs tool with the MCP server.

    Args:
        mcp (FastMCP): The MCP server instance to register the tool with.
        client (GraylogClient): Shared Graylog client.
    """

    @mcp.tool()
    async def search_logs(
        query: str,
        stream_id: str = "",
        range_seconds: Optional[int] = None,
        from_time: str = "",
        to_time: str = "",
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        fields: str = "",
        sort: str = "",
        deduplicate: bool = False,
        templateize: bool = False,
        truncate_message: Optional[int] = None,
        max_result_size: Optional[int] = None,
    ) -> str:
        """Search Graylog logs using Lucene query syntax. Returns matching log messages with metadata.

        Args:
            query: Lucene query string (e.g. 'level:ERROR AND service:auth').
            stream_id: Graylog stream ID to search within.
            range_seconds: Relative time range in seconds (default 300).
                Ignored if from_time/to_time are set.
            from_time: Start time in ISO8601 format
                (e.g. '2024-01-15T10:00:00.000Z'). Must be used with to_time.
            to_time: End time in ISO8601 format. Must be used with from_time.
            limit: Maximum number of messages to return (default 50, max 10000).
            offset: Number of messages to skip for pagination (default 0).
            fields: Comma-separated list of fields to return
                (e.g. 'timestamp,source,message,level').
            sort: Sort order as 'field:asc' or 'field:desc'.
            deduplicate: Collapse identical messages and report counts.
            templateize: Group messages into log templates with counts.
                Cannot be combined with deduplicate.
            truncate_message: Truncate the message field to N bytes
                (0 = no truncation). Useful for large stack traces.
            max_result_size: Maximum response size in bytes (default 50000,
                0 = no limit). Larger responses are shrunk to fit.

        Returns:
            str: JSON string with the messages, dedup groups or templates
                plus paging metadata. On error, a JSON string with an
                error message.
        """
        try:
            query = require(query, "query")
            check_time_range(from_time, to_time)
            if deduplicate and templateize:
                raise ToolInputError("'deduplicate' and 'templateize' cannot be used together")
            requested_limit = non_negative(limit, "limit", 50)
            requested_offset = non_negative(offset, "offset", 0)
            relative = non_negative(range_seconds, "range_seconds", 0)
            truncate = non_negative(truncate_message, "truncate_message", 0)
            max_size = non_negative(max_result_size, "max_result_size", settings.DEFAULT_MAX_RESULT_SIZE)
        except ToolInputError as e:
            return error_response(str(e))

        if requested_limit < 1:
            requested_limit = 50
        requested_limit = min(requested_limit, settings.SEARCH_MAX_LIMIT)

        field_list = parse_field_list(fields)
        params = SearchParams(
            query=query,
            range_seconds=relative,
            time_from=from_time,
            time_to=to_time,
            limit=requested_limit,
            offset=requested_offset,
            fields=field_list,
            sort=sort.strip(),
            stream_ids=[stream_id] if stream_id else [],
        )
        if deduplicate:
            # Dedup pages over groups, so fetch from the start with headroom.
            params.offset = 0
            params.limit = min(
                (requested_offset + requested_limit) * settings.DEDUP_FETCH_MULTIPLIER,
                settings.SEARCH_MAX_LIMIT,
            )

        try:
            batch = await client.search(params)
        except (GraylogAPIError, httpx.HTTPError) as e:
            return upstream_error("Search", e)

        if truncate > 0:
            for item in batch.messages:
                item.message.message = truncate_text(item.message.message, truncate)

        if deduplicate:
            result = build_dedup_result(
                batch, requested_limit, requested_offset, field_list, settings.MAX_SAMPLE_IDS,
            )
            return fitted_response(DedupShaper(result), max_size)

        if templateize:
            try:
                result = build_templates_result(batch, settings.MAX_SAMPLE_IDS)
            except Exception as e:
                logger.warning("Template extraction failed (%s): %s", type(e).__name__, e)
                return error_response(f"Templateization failed: {e}")
            return fitted_response(TemplatesShaper(result), max_size)

        result = build_messages_result(batch, params, field_list)
        return fitted_response(MessagesShaper(result), max_size)
