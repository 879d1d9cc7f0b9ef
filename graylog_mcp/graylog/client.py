# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Async Graylog REST client.

Covers the endpoints the log tools need: Views search, single message
lookup, streams, fields and the scripting aggregate API. Every call is a
single request; failures are raised once and never retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

import httpx

from graylog_mcp.common.models import Batch, IndexedMessage, LogMessage

logger = logging.getLogger(__name__)

DEFAULT_RANGE_SECONDS = 300
DEFAULT_LIMIT = 50

_QUERY_ID = "q1"
_SEARCH_TYPE_ID = "msgs"


class GraylogAPIError(Exception):
    """Raised when Graylog answers with a non-2xx status.

    Attributes:
        status_code (int): HTTP status returned by Graylog.
        body (str): Raw response body.
        path (str): Request path that failed.
    """

    def __init__(self, status_code: int, body: str, path: str) -> None:
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        body = self.body
        if len(body) > 500:
            body = body[:500] + "...[truncated]"
        return f"Graylog API error: status={self.status_code} path={self.path} body={body}"


@dataclass
class SearchParams:
    """Parameters of one message search.

    Either ``time_from``/``time_to`` (absolute) or ``range_seconds``
    (relative, before now) selects the time range; absolute wins when both
    bounds are set.

    Attributes:
        query (str): Lucene query string.
        range_seconds (int): Relative window in seconds, 0 means the default.
        time_from (str): ISO8601 start of an absolute range.
        time_to (str): ISO8601 end of an absolute range.
        limit (int): Maximum messages to return, 0 means the default.
        offset (int): Messages to skip.
        fields (list[str]): Fields Graylog should return, empty for all.
        sort (str): "field:asc" or "field:desc", empty for backend order.
        stream_ids (list[str]): Streams to restrict the search to.
    """

    query: str = "*"
    range_seconds: int = 0
    time_from: str = ""
    time_to: str = ""
    limit: int = 0
    offset: int = 0
    fields: list[str] = field(default_factory=list)
    sort: str = ""
    stream_ids: list[str] = field(default_factory=list)

    def timerange(self) -> dict[str, Any]:
        if self.time_from and self.time_to:
            return {"type": "absolute", "from": self.time_from, "to": self.time_to}
        return {"type": "relative", "range": self.range_seconds or DEFAULT_RANGE_SECONDS}

    def to_request(self) -> dict[str, Any]:
        """Build the Views search request body."""
        search_type: dict[str, Any] = {
            "id": _SEARCH_TYPE_ID,
            "type": "messages",
            "limit": self.limit or DEFAULT_LIMIT,
            "offset": self.offset,
        }
        if self.sort:
            sort_field, sep, order = self.sort.partition(":")
            if sep:
                search_type["sort"] = [{"field": sort_field, "order": order.upper()}]
        if self.fields:
            search_type["fields"] = list(self.fields)

        query: dict[str, Any] = {
            "id": _QUERY_ID,
            "timerange": self.timerange(),
            "query": {"type": "elasticsearch", "query_string": self.query},
            "search_types": [search_type],
        }
        if self.stream_ids:
            query["filter"] = {
                "type": "or",
                "filters": [{"type": "stream", "id": sid} for sid in self.stream_ids],
            }
        return {"queries": [query]}


class GraylogClient:
    """Thin async wrapper over the Graylog REST API.

    Args:
        base_url (str): Graylog base URL, e.g. "https://graylog.example.com".
        username (str): Basic-auth username, or an API token.
        password (str): Basic-auth password, or the literal "token" for API
            tokens.
        verify (bool): Whether to verify TLS certificates.
        timeout (float): Request timeout in seconds.
        transport (Optional[httpx.AsyncBaseTransport]): Custom transport,
            mainly for tests.
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        *,
        verify: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(username, password) if username else None,
            verify=verify,
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "X-Requested-By": "XMLHttpRequest",
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any) -> GraylogClient:
        """Create a client from application settings.

        An API token takes precedence over username/password.
        """
        if settings.GRAYLOG_TLS_SKIP_VERIFY:
            logger.warning("TLS certificate verification is disabled for Graylog requests")
        if settings.GRAYLOG_TOKEN:
            username, password = settings.GRAYLOG_TOKEN, "token"
        else:
            username, password = settings.GRAYLOG_USERNAME, settings.GRAYLOG_PASSWORD
        return cls(
            settings.GRAYLOG_URL,
            username,
            password,
            verify=not settings.GRAYLOG_TLS_SKIP_VERIFY,
            timeout=settings.GRAYLOG_TIMEOUT,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        response = await self._http.request(method, path, json=body)
        if not response.is_success:
            raise GraylogAPIError(response.status_code, response.text, path)
        try:
            return response.json()
        except ValueError as e:
            raise GraylogAPIError(response.status_code, f"invalid JSON response: {e}", path) from e

    async def search(self, params: SearchParams) -> Batch:
        """Run a message search through the Views API.

        Args:
            params (SearchParams): Query, time range, paging and filters.

        Returns:
            Batch: The returned messages and Graylog's total match count.

        Raises:
            GraylogAPIError: On a non-2xx response.
            httpx.HTTPError: On transport failures and timeouts.
        """
        data = await self._request("POST", "/api/views/search/sync", params.to_request())

        query_result = (data.get("results") or {}).get(_QUERY_ID)
        if not query_result:
            return Batch()
        result = (query_result.get("search_types") or {}).get(_SEARCH_TYPE_ID)
        if not result:
            return Batch()

        messages = [
            IndexedMessage(
                message=LogMessage.from_fields(item.get("message") or {}),
                index=item.get("index") or "",
            )
            for item in result.get("messages") or []
        ]
        return Batch(messages=messages, total_results=result.get("total_results") or 0)

    async def get_message(self, index: str, message_id: str) -> IndexedMessage:
        """Fetch a single message by index and id."""
        path = f"/api/messages/{quote(index, safe='')}/{quote(message_id, safe='')}"
        data = await self._request("GET", path)
        # The actual fields are nested in message.fields
        fields = (data.get("message") or {}).get("fields") or {}
        return IndexedMessage(message=LogMessage.from_fields(fields), index=data.get("index") or index)

    async def get_streams(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/streams")
        return data.get("streams") or []

    async def get_fields(self) -> list[str]:
        data = await self._request("GET", "/api/system/fields")
        return list(data.get("fields") or [])

    async def aggregate(self, request: dict[str, Any]) -> dict[str, Any]:
        """Run a scripting API aggregation and return the tabular response."""
        return await self._request("POST", "/api/search/aggregate", request)
