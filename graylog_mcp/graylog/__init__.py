# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Graylog REST client."""

from graylog_mcp.graylog.client import GraylogAPIError, GraylogClient, SearchParams

__all__ = ["GraylogAPIError", "GraylogClient", "SearchParams"]
