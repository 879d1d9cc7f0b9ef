# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Integration test: log tools registered on the graylog server, with a mocked Graylog client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from graylog_mcp.common.fitting import ResultShaper
from graylog_mcp.common.models import Batch, IndexedMessage, LogMessage
from graylog_mcp.common.projection import TRUNCATION_SUFFIX
from graylog_mcp.graylog import GraylogAPIError, SearchParams
from graylog_mcp.servers import create_server
from graylog_mcp.tools.logs.search import DedupShaper

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _indexed(msg_id: str, body: str, **extra) -> IndexedMessage:
    return IndexedMessage(
        message=LogMessage(
            id=msg_id,
            timestamp=extra.pop("timestamp", "2024-01-01T00:00:00.000Z"),
            source="svc",
            message=body,
            extra=extra,
        ),
        index="graylog_0",
    )


def _make_server(client: AsyncMock):
    """Create a graylog MCP server whose tools share ``client``."""
    with patch("graylog_mcp.tools.logs.GraylogClient") as mock_cls:
        mock_cls.from_settings.return_value = client
        return create_server("graylog")


async def _call_tool(server, name: str, args: dict) -> dict:
    """Call a registered tool by name and return parsed JSON."""
    tools = server._tool_manager._tools
    result = await tools[name].fn(**args)
    return json.loads(result)


def _search_arg(client: AsyncMock, call: int = 0) -> SearchParams:
    return client.search.call_args_list[call].args[0]


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def server(client):
    return _make_server(client)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    """Tests for the server factory."""

    def test_all_tools_registered(self, server):
        """The graylog server exposes every log tool."""
        assert set(server._tool_manager._tools) == {
            "search_logs",
            "get_log_context",
            "aggregate_logs",
            "list_streams",
            "list_fields",
        }

    def test_unknown_server_rejected(self):
        """Unknown server keys are rejected."""
        with pytest.raises((KeyError, ValueError)):
            create_server("nope")


# ---------------------------------------------------------------------------
# search_logs
# ---------------------------------------------------------------------------


class TestSearchLogsValidation:
    """Argument errors are returned as JSON before any Graylog call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "args, fragment",
        [
            ({"query": "  "}, "'query' parameter is required"),
            ({"query": "*", "from_time": "2024-01-01T00:00:00.000Z"}, "must be used together"),
            ({"query": "*", "to_time": "2024-01-01T00:00:00.000Z"}, "must be used together"),
            ({"query": "*", "deduplicate": True, "templateize": True}, "cannot be used together"),
            ({"query": "*", "limit": -1}, "'limit' must be >= 0"),
            ({"query": "*", "offset": -5}, "'offset' must be >= 0"),
            ({"query": "*", "max_result_size": -1}, "'max_result_size' must be >= 0"),
            ({"query": "*", "truncate_message": -1}, "'truncate_message' must be >= 0"),
        ],
    )
    async def test_invalid_arguments(self, server, client, args, fragment):
        """Each invalid combination yields an error and no search."""
        result = await _call_tool(server, "search_logs", args)

        assert fragment in result["error"]
        client.search.assert_not_called()


class TestSearchLogs:
    """Tests for the three search result shapes."""

    @pytest.mark.asyncio
    async def test_ungrouped_search(self, server, client):
        """Plain search projects fields and reports paging."""
        client.search.return_value = Batch(
            messages=[_indexed("m1", "boom", level=3, facility="api")],
            total_results=120,
        )

        result = await _call_tool(server, "search_logs", {
            "query": "level:3",
            "stream_id": "s1",
            "range_seconds": 600,
            "fields": "level",
            "sort": "timestamp:desc",
        })

        assert result["total_results"] == 120
        assert result["limit"] == 50
        assert result["offset"] == 0
        assert result["has_more"] is True
        assert result["messages"] == [{
            "message": {
                "_id": "m1",
                "timestamp": "2024-01-01T00:00:00.000Z",
                "source": "svc",
                "message": "boom",
                "level": 3,
            },
            "index": "graylog_0",
        }]
        assert "response_truncated" not in result

        params = _search_arg(client)
        assert params.query == "level:3"
        assert params.range_seconds == 600
        assert params.stream_ids == ["s1"]
        assert params.fields == ["level"]
        assert params.sort == "timestamp:desc"

    @pytest.mark.asyncio
    async def test_limit_clamped_and_zero_defaulted(self, server, client):
        """Limit 0 means the default; huge limits are capped."""
        client.search.return_value = Batch()

        await _call_tool(server, "search_logs", {"query": "*", "limit": 0})
        await _call_tool(server, "search_logs", {"query": "*", "limit": 50000})

        assert _search_arg(client, 0).limit == 50
        assert _search_arg(client, 1).limit == 10000

    @pytest.mark.asyncio
    async def test_absolute_time_range(self, server, client):
        """from_time/to_time are forwarded together."""
        client.search.return_value = Batch()

        await _call_tool(server, "search_logs", {
            "query": "*",
            "from_time": "2024-01-01T00:00:00.000Z",
            "to_time": "2024-01-02T00:00:00.000Z",
        })

        params = _search_arg(client)
        assert params.timerange()["type"] == "absolute"

    @pytest.mark.asyncio
    async def test_truncate_message(self, server, client):
        """truncate_message shortens bodies before shaping."""
        client.search.return_value = Batch(messages=[_indexed("m1", "x" * 300)], total_results=1)

        result = await _call_tool(server, "search_logs", {"query": "*", "truncate_message": 100})

        assert result["messages"][0]["message"]["message"] == "x" * 100 + TRUNCATION_SUFFIX

    @pytest.mark.asyncio
    async def test_deduplicated_search(self, server, client):
        """Dedup overfetches from offset 0 and pages over groups."""
        bodies = ["A", "B", "A", "C", "B"]
        client.search.return_value = Batch(
            messages=[_indexed(str(i), b) for i, b in enumerate(bodies, start=1)],
            total_results=5,
        )

        result = await _call_tool(server, "search_logs", {
            "query": "*", "deduplicate": True, "limit": 2, "offset": 1,
        })

        params = _search_arg(client)
        assert params.offset == 0
        assert params.limit == 9

        assert result["total_raw_results"] == 5
        assert result["unique_in_batch"] == 3
        assert result["limit"] == 2
        assert result["offset"] == 1
        groups = result["deduplicated"]
        assert [g["message"]["message"] for g in groups] == ["B", "C"]
        assert [g["count"] for g in groups] == [2, 1]
        assert groups[0]["message_ids"] == ["2", "5"]
        assert "_id" not in groups[0]["message"]

    @pytest.mark.asyncio
    async def test_deduplicated_ids_capped(self, server, client):
        """Sample ids are capped while the count stays exact."""
        client.search.return_value = Batch(
            messages=[_indexed(f"id-{i}", "same") for i in range(8)],
            total_results=8,
        )

        result = await _call_tool(server, "search_logs", {"query": "*", "deduplicate": True})

        (group,) = result["deduplicated"]
        assert group["count"] == 8
        assert group["message_ids"] == [f"id-{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_templated_search(self, server, client):
        """Templateize groups structurally similar messages."""
        client.search.return_value = Batch(
            messages=[
                _indexed("id-1", "Connection to 10.0.0.1 failed: timeout"),
                _indexed("id-2", "Connection to 10.0.0.2 failed: timeout"),
                _indexed("id-3", "Connection to 10.0.0.3 failed: timeout"),
                _indexed("id-4", "User admin logged in from 192.168.1.1"),
                _indexed("id-5", "User root logged in from 192.168.1.2"),
            ],
            total_results=5,
        )

        result = await _call_tool(server, "search_logs", {"query": "*", "templateize": True})

        assert result["total_results"] == 5
        assert result["template_count"] == len(result["templates"])
        assert sum(t["count"] for t in result["templates"]) == 5
        first = result["templates"][0]
        assert first["count"] == 3
        assert first["message_ids"] == ["id-1", "id-2", "id-3"]

    @pytest.mark.asyncio
    async def test_deduplicated_result_fitted_to_budget(self, server, client):
        """Oversized dedup results drop whole groups and keep their own metadata."""
        assert DedupShaper.__bases__ == (ResultShaper,)
        client.search.return_value = Batch(
            messages=[_indexed(f"m-{i:02d}", f"{i:02d}" + "x" * 1000) for i in range(20)],
            total_results=20,
        )

        raw = await server._tool_manager._tools["search_logs"].fn(
            query="*", deduplicate=True, max_result_size=3000,
        )
        result = json.loads(raw)

        assert len(raw.encode("utf-8")) <= 3000
        assert result["response_truncated"] is True
        assert result["has_more"] is True
        assert result["unique_in_batch"] == 20
        assert 0 < len(result["deduplicated"]) < 20
        assert all(g["count"] == 1 for g in result["deduplicated"])

    @pytest.mark.asyncio
    async def test_templateize_failure_is_reported(self, server, client):
        """A miner failure becomes a JSON error."""
        client.search.return_value = Batch(messages=[_indexed("a", "x")], total_results=1)

        with patch("graylog_mcp.tools.logs.search.templateize", side_effect=RuntimeError("bad state")):
            result = await _call_tool(server, "search_logs", {"query": "*", "templateize": True})

        assert result == {"error": "Templateization failed: bad state"}

    @pytest.mark.asyncio
    async def test_result_fitted_to_budget(self, server, client):
        """Oversized results are truncated and reduced to fit."""
        client.search.return_value = Batch(
            messages=[_indexed(f"m-{i:02d}", "x" * 1000) for i in range(20)],
            total_results=20,
        )

        raw = await server._tool_manager._tools["search_logs"].fn(query="*", max_result_size=3000)
        result = json.loads(raw)

        assert len(raw.encode("utf-8")) <= 3000
        assert result["response_truncated"] is True
        assert result["has_more"] is True
        assert 0 < len(result["messages"]) < 20
        assert result["messages"][0]["message"]["message"].endswith(TRUNCATION_SUFFIX)
        assert result["total_results"] == 20

    @pytest.mark.asyncio
    async def test_zero_budget_disables_fitting(self, server, client):
        """max_result_size=0 returns the full result."""
        client.search.return_value = Batch(
            messages=[_indexed(f"m-{i}", "x" * 1000) for i in range(60)],
            total_results=60,
        )

        result = await _call_tool(server, "search_logs", {"query": "*", "max_result_size": 0})

        assert len(result["messages"]) == 60
        assert "response_truncated" not in result

    @pytest.mark.asyncio
    async def test_upstream_error(self, server, client):
        """Graylog failures become JSON errors."""
        client.search.side_effect = GraylogAPIError(503, "unavailable", "/api/views/search/sync")

        result = await _call_tool(server, "search_logs", {"query": "*"})

        assert "status=503" in result["error"]

    @pytest.mark.asyncio
    async def test_timeout_error(self, server, client):
        """Timeouts are reported without raising."""
        client.search.side_effect = httpx.ReadTimeout("read timed out")

        result = await _call_tool(server, "search_logs", {"query": "*"})

        assert result == {"error": "Search failed: request timed out"}


# ---------------------------------------------------------------------------
# get_log_context
# ---------------------------------------------------------------------------


class TestGetLogContext:
    """Tests for the context tool."""

    @staticmethod
    def _answer_searches(client: AsyncMock, desc: list, asc: list) -> None:
        async def _search(params: SearchParams) -> Batch:
            messages = desc if params.sort == "timestamp:desc" else asc
            return Batch(messages=list(messages), total_results=len(messages))

        client.search.side_effect = _search

    @pytest.mark.asyncio
    async def test_context_window(self, server, client):
        """Target, before and after come back in chronological order."""
        target = _indexed("target", "the event")
        client.get_message.return_value = target
        self._answer_searches(
            client,
            [target, _indexed("overlap", "o"), _indexed("b2", "b"), _indexed("b1", "b")],
            [target, _indexed("overlap", "o"), _indexed("a1", "a"), _indexed("a2", "a"), _indexed("a3", "a")],
        )

        result = await _call_tool(server, "get_log_context", {
            "message_id": "target", "index": "graylog_0", "before": 3, "after": 3,
        })

        client.get_message.assert_awaited_once_with("graylog_0", "target")
        assert result["target_message"]["message"]["_id"] == "target"
        assert [m["message"]["_id"] for m in result["messages_before"]] == ["b1", "b2", "overlap"]
        assert [m["message"]["_id"] for m in result["messages_after"]] == ["a1", "a2", "a3"]
        assert result["context_incomplete"] is False

    @pytest.mark.asyncio
    async def test_defaults_and_clamping(self, server, client):
        """Missing counts default to 5; large counts are clamped."""
        client.get_message.return_value = _indexed("t", "x")
        self._answer_searches(client, [], [])

        result = await _call_tool(server, "get_log_context", {
            "message_id": "t", "index": "i", "after": 100_000,
        })

        limits = {call.args[0].sort: call.args[0].limit for call in client.search.call_args_list}
        assert limits == {"timestamp:desc": 16, "timestamp:asc": 1501}
        assert result["context_incomplete"] is True

    @pytest.mark.asyncio
    async def test_missing_arguments(self, server, client):
        """message_id and index are required."""
        result = await _call_tool(server, "get_log_context", {"message_id": "", "index": "i"})
        assert "'message_id' parameter is required" in result["error"]

        result = await _call_tool(server, "get_log_context", {"message_id": "m", "index": ""})
        assert "'index' parameter is required" in result["error"]
        client.get_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_target_not_found(self, server, client):
        """A failing target lookup is an error and no context is searched."""
        client.get_message.side_effect = GraylogAPIError(404, "not found", "/api/messages/i/m")

        result = await _call_tool(server, "get_log_context", {"message_id": "m", "index": "i"})

        assert "status=404" in result["error"]
        client.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_side_error_reported(self, server, client):
        """A failed side is reported while the other side is returned."""
        target = _indexed("t", "x")
        client.get_message.return_value = target

        async def _search(params: SearchParams) -> Batch:
            if params.sort == "timestamp:desc":
                raise GraylogAPIError(500, "boom", "/api/views/search/sync")
            return Batch(messages=[target, _indexed("a1", "a")], total_results=2)

        client.search.side_effect = _search

        result = await _call_tool(server, "get_log_context", {
            "message_id": "t", "index": "i", "before": 1, "after": 1,
        })

        assert "status=500" in result["before_error"]
        assert "after_error" not in result
        assert result["messages_before"] == []
        assert [m["message"]["_id"] for m in result["messages_after"]] == ["a1"]
        assert result["context_incomplete"] is True

    @pytest.mark.asyncio
    async def test_target_without_timestamp(self, server, client):
        """No context is searched around a target without a timestamp."""
        client.get_message.return_value = _indexed("t", "x", timestamp="")

        result = await _call_tool(server, "get_log_context", {"message_id": "t", "index": "i"})

        client.search.assert_not_called()
        assert result["before_error"] == "target message has no timestamp"
        assert result["after_error"] == "target message has no timestamp"
        assert result["context_incomplete"] is True

    @pytest.mark.asyncio
    async def test_context_fitted_to_budget(self, server, client):
        """Large windows shrink both sides and flag the result incomplete."""
        target = _indexed("t", "x" * 1000)
        client.get_message.return_value = target
        self._answer_searches(
            client,
            [target] + [_indexed(f"b{i}", "y" * 1000) for i in range(20)],
            [target] + [_indexed(f"a{i}", "z" * 1000) for i in range(20)],
        )

        raw = await server._tool_manager._tools["get_log_context"].fn(
            message_id="t", index="i", before=20, after=20, max_result_size=4000,
        )
        result = json.loads(raw)

        assert result["response_truncated"] is True
        assert result["context_incomplete"] is True
        assert len(result["messages_before"]) < 20
        assert len(result["messages_after"]) < 20
        assert len(raw.encode("utf-8")) <= 4000


# ---------------------------------------------------------------------------
# aggregate_logs
# ---------------------------------------------------------------------------


class TestAggregateLogs:
    """Tests for the aggregation tool."""

    @pytest.mark.asyncio
    async def test_rows_from_tabular_response(self, server, client):
        """Schema names and data rows are zipped into row objects."""
        client.aggregate.return_value = {
            "schema": [{"name": "grouping: source"}, {"name": "metric: count()"}],
            "datarows": [["web", 10], ["db", 4]],
            "metadata": {"effective_timerange": {"type": "relative", "range": 300}},
        }

        result = await _call_tool(server, "aggregate_logs", {
            "query": "*",
            "metrics": "count,avg:took_ms",
            "group_by": "source",
            "stream_id": "s1",
            "sort": "DESC",
        })

        assert result["rows"] == [
            {"grouping: source": "web", "metric: count()": 10},
            {"grouping: source": "db", "metric: count()": 4},
        ]
        assert result["total_rows"] == 2
        assert result["metadata"]["effective_timerange"]["range"] == 300

        request = client.aggregate.call_args.args[0]
        assert request["query"] == "*"
        assert request["timerange"] == {"type": "relative", "range": 300}
        assert request["group_by"] == [{"field": "source", "limit": 10}]
        assert request["metrics"] == [
            {"function": "count", "sort": "desc"},
            {"function": "avg", "field": "took_ms"},
        ]
        assert request["streams"] == ["s1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "args, fragment",
        [
            ({"metrics": "median:x"}, "unknown aggregation function 'median'"),
            ({"metrics": "avg"}, "'avg' requires a field"),
            ({"metrics": "percentile:took_ms"}, "percentile requires format"),
            ({"metrics": "percentile:took_ms:101"}, "between 0 and 100"),
            ({"group_by": "message"}, "cannot be used for group_by"),
            ({"group_by": " , "}, "at least one non-empty field"),
            ({"from_time": "2024-01-01T00:00:00.000Z"}, "must be used together"),
        ],
    )
    async def test_invalid_arguments(self, server, client, args, fragment):
        """Parse errors are returned without calling Graylog."""
        full = {"query": "*", "metrics": "count", "group_by": "source", **args}

        result = await _call_tool(server, "aggregate_logs", full)

        assert fragment in result["error"]
        client.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_script_exception_explained(self, server, client):
        """Backend script failures get a group_by hint."""
        client.aggregate.side_effect = GraylogAPIError(
            400, '{"type":"script_exception","reason":"runtime error"}', "/api/search/aggregate",
        )

        result = await _call_tool(server, "aggregate_logs", {
            "query": "*", "metrics": "count", "group_by": "payload",
        })

        assert "cannot group by" in result["error"]

    @pytest.mark.asyncio
    async def test_other_api_errors_passed_through(self, server, client):
        """Non-script errors keep Graylog's status and body."""
        client.aggregate.side_effect = GraylogAPIError(403, "forbidden", "/api/search/aggregate")

        result = await _call_tool(server, "aggregate_logs", {
            "query": "*", "metrics": "count", "group_by": "source",
        })

        assert "status=403" in result["error"]


# ---------------------------------------------------------------------------
# list_streams / list_fields
# ---------------------------------------------------------------------------


class TestCatalogTools:
    """Tests for stream and field discovery."""

    @pytest.mark.asyncio
    async def test_list_streams_skips_disabled_and_filters(self, server, client):
        """Disabled streams are hidden; title filtering is case-insensitive."""
        client.get_streams.return_value = [
            {"id": "1", "title": "API errors", "description": "d", "index_set_id": "x", "disabled": False},
            {"id": "2", "title": "api audit", "description": "", "index_set_id": "x", "disabled": True},
            {"id": "3", "title": "Billing", "description": "", "index_set_id": "y", "disabled": False},
        ]

        result = await _call_tool(server, "list_streams", {"title_filter": "API"})

        assert result == {
            "streams": [{"id": "1", "title": "API errors", "description": "d", "index_set_id": "x"}],
            "total": 1,
        }

    @pytest.mark.asyncio
    async def test_list_fields_sorted_and_filtered(self, server, client):
        """Field names come back sorted, optionally filtered."""
        client.get_fields.return_value = ["source", "http_status", "Level", "message", "http_method"]

        everything = await _call_tool(server, "list_fields", {})
        http = await _call_tool(server, "list_fields", {"name_filter": "HTTP"})

        assert everything["fields"] == ["Level", "http_method", "http_status", "message", "source"]
        assert everything["total"] == 5
        assert http == {"fields": ["http_method", "http_status"], "total": 2}

    @pytest.mark.asyncio
    async def test_catalog_errors(self, server, client):
        """Upstream failures are returned as JSON errors."""
        client.get_streams.side_effect = httpx.ConnectError("refused")
        client.get_fields.side_effect = GraylogAPIError(401, "unauthorized", "/api/system/fields")

        streams = await _call_tool(server, "list_streams", {})
        fields = await _call_tool(server, "list_fields", {})

        assert streams == {"error": "Get streams failed: refused"}
        assert "status=401" in fields["error"]


def test_client_built_from_settings():
    """register_log_tools builds one client from settings."""
    with patch("graylog_mcp.tools.logs.GraylogClient") as mock_cls:
        mock_cls.from_settings.return_value = MagicMock()
        create_server("graylog")
    mock_cls.from_settings.assert_called_once()
