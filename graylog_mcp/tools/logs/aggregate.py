# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Log aggregation tool using the Graylog scripting API."""
import logging
from typing import Any, Optional

import httpx

from mcp.server.fastmcp import FastMCP
from graylog_mcp.common.fitting import ResultShaper
from graylog_mcp.config import settings
from graylog_mcp.graylog import GraylogAPIError, GraylogClient
from graylog_mcp.graylog.client import DEFAULT_RANGE_SECONDS
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

# Analyzed full-text fields have no keyword sub-field to group on.
NON_AGGREGATABLE_FIELDS = frozenset({"message", "full_message"})

VALID_FUNCTIONS = (
    "count", "avg", "min", "max", "sum", "stddev", "variance",
    "card", "percentile", "latest", "sumofsquares",
)


def parse_metrics(metrics: str, sort: str = "") -> list[dict[str, Any]]:
    """Parse a comma-separated metric list.

    Each metric is ``fn``, ``fn:field`` or ``percentile:field:value``. The
    sort direction, if any, applies to the first metric only.

    Args:
        metrics (str): e.g. "count,avg:took_ms,percentile:took_ms:95".
        sort (str): "asc" or "desc"; anything else is ignored.

    Returns:
        list[dict[str, Any]]: Scripting API metric objects.

    Raises:
        ToolInputError: On unknown functions or malformed metrics.
    """
    parsed: list[dict[str, Any]] = []
    for part in metrics.split(","):
        part = part.strip()
        if not part:
            continue
        segments = part.split(":", 2)
        fn = segments[0].strip().lower()
        if fn not in VALID_FUNCTIONS:
            raise ToolInputError(
                f"unknown aggregation function '{fn}'. Valid functions: {', '.join(VALID_FUNCTIONS)}"
            )

        metric: dict[str, Any] = {"function": fn}
        if fn == "count":
            if len(segments) > 1 and segments[1].strip():
                metric["field"] = segments[1].strip()
        elif fn == "percentile":
            if len(segments) < 3:
                raise ToolInputError(
                    "percentile requires format 'percentile:field:value' (e.g. 'percentile:took_ms:95')"
                )
            metric["field"] = segments[1].strip()
            try:
                pct = float(segments[2].strip())
            except ValueError:
                pct = -1.0
            if not 0 < pct <= 100:
                raise ToolInputError(
                    f"percentile value must be a number between 0 and 100, got '{segments[2]}'"
                )
            metric["configuration"] = {"percentile": pct}
        else:
            if len(segments) < 2 or not segments[1].strip():
                raise ToolInputError(f"'{fn}' requires a field (e.g. '{fn}:field_name')")
            metric["field"] = segments[1].strip()

        if not parsed and sort.lower() in ("asc", "desc"):
            metric["sort"] = sort.lower()
        parsed.append(metric)

    if not parsed:
        raise ToolInputError("at least one metric is required")
    return parsed


def parse_group_by(group_by: str, limit: int) -> list[dict[str, Any]]:
    groups = []
    for name in group_by.split(","):
        name = name.strip()
        if not name:
            continue
        if name in NON_AGGREGATABLE_FIELDS:
            raise ToolInputError(
                f"field '{name}' is a full-text analyzed field and cannot be used for group_by "
                "aggregation. Use keyword fields like 'source', 'level', 'facility', or your own "
                "indexed keyword fields instead."
            )
        group: dict[str, Any] = {"field": name}
        if limit > 0:
            group["limit"] = limit
        groups.append(group)
    if not groups:
        raise ToolInputError("'group_by' must contain at least one non-empty field name")
    return groups


def tabular_to_rows(schema: list[dict[str, Any]], datarows: list[list[Any]]) -> list[dict[str, Any]]:
    """Zip each data row with the schema column names."""
    names = [entry.get("name", "") for entry in schema]
    return [dict(zip(names, row)) for row in datarows]


class AggregateShaper(ResultShaper):
    """Aggregation rows: ``{rows, total_rows, metadata}``."""

    def truncate_content(self, max_len: int) -> None:
        # Rows hold no message bodies.
        return None

    def reduce_count(self) -> bool:
        rows = self.payload["rows"]
        if len(rows) <= 1:
            return False
        self.payload["rows"] = rows[:len(rows) // 2]
        self.payload["rows_truncated"] = True
        return True

    def fallback(self) -> dict[str, Any]:
        return {
            "total_rows": self.payload["total_rows"],
            "metadata": self.payload["metadata"],
            "response_truncated": True,
            "error": "Aggregation response too large even after truncation. "
                     "Try reducing group_limit or using fewer group_by fields.",
        }


def register_aggregate_logs(mcp: FastMCP, client: GraylogClient) -> None:
    """Register the aggregate_logs tool with the MCP server.

    Args:
        mcp (FastMCP): The MCP server instance to register the tool with.
        client (GraylogClient): Shared Graylog client.
    """

    @mcp.tool()
    async def aggregate_logs(
        query: str,
        metrics: str,
        group_by: str,
        group_limit: Optional[int] = None,
        stream_id: str = "",
        range_seconds: Optional[int] = None,
        from_time: str = "",
        to_time: str = "",
        sort: str = "",
    ) -> str:
        """Aggregate Graylog logs with statistical functions (count, avg, min, max, percentile, ...) grouped by fields.

        Args:
            query: Lucene query string (e.g. 'level:ERROR AND service:auth').
            metrics: Comma-separated metrics: 'count', 'avg:field', 'min:field',
                'max:field', 'sum:field', 'percentile:field:value', 'card:field',
                'stddev:field', 'variance:field', 'latest:field'.
            group_by: Comma-separated fields to group by (e.g. 'source,level').
            group_limit: Maximum number of groups per field (default 10).
            stream_id: Graylog stream ID to search within.
            range_seconds: Relative time range in seconds (default 300).
                Ignored if from_time/to_time are set.
            from_time: Start time in ISO8601 format. Must be used with to_time.
            to_time: End time in ISO8601 format. Must be used with from_time.
            sort: Sort direction for the first metric: 'asc' or 'desc'.

        Returns:
            str: JSON string with one row per group, the row count and
                Graylog's effective time range. On error, a JSON string with
                an error message.
        """
        try:
            query = require(query, "query")
            parsed_metrics = parse_metrics(require(metrics, "metrics"), sort)
            check_time_range(from_time, to_time)
            relative = non_negative(range_seconds, "range_seconds", 0)
            groups = parse_group_by(
                require(group_by, "group_by"), non_negative(group_limit, "group_limit", 10),
            )
        except ToolInputError as e:
            return error_response(str(e))

        if from_time and to_time:
            timerange: dict[str, Any] = {"type": "absolute", "from": from_time, "to": to_time}
        else:
            timerange = {"type": "relative", "range": relative or DEFAULT_RANGE_SECONDS}

        request: dict[str, Any] = {
            "query": query,
            "timerange": timerange,
            "group_by": groups,
            "metrics": parsed_metrics,
        }
        if stream_id:
            request["streams"] = [stream_id]

        try:
            response = await client.aggregate(request)
        except GraylogAPIError as e:
            if e.status_code == 400 and "script_exception" in e.body:
                logger.warning("Aggregation rejected by the search backend: %s", e)
                return error_response(
                    "Aggregation failed: the search backend cannot group by one or more of the "
                    "requested fields. Analyzed text fields (e.g. 'message', 'full_message') are "
                    "not supported in group_by; use keyword fields like 'source', 'level', "
                    "'facility' instead."
                )
            return upstream_error("Aggregate", e)
        except httpx.HTTPError as e:
            return upstream_error("Aggregate", e)

        rows = tabular_to_rows(response.get("schema") or [], response.get("datarows") or [])
        result = {
            "rows": rows,
            "total_rows": len(rows),
            "metadata": response.get("metadata") or {},
        }
        return fitted_response(AggregateShaper(result), settings.DEFAULT_MAX_RESULT_SIZE)
