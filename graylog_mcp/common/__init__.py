# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Shared infrastructure: data model, projection, fitting, grouping."""

from graylog_mcp.common.dedup import cap_message_ids, content_hash, deduplicate
from graylog_mcp.common.fitting import (
    FittingState,
    ResultSerializationError,
    ResultShaper,
    fit_result,
)
from graylog_mcp.common.models import (
    Batch,
    ContextWindow,
    DedupGroup,
    IndexedMessage,
    LogMessage,
    TemplateGroup,
)
from graylog_mcp.common.projection import parse_field_list, project, truncate_text
from graylog_mcp.common.templates import templateize

__all__ = [
    "Batch",
    "ContextWindow",
    "DedupGroup",
    "IndexedMessage",
    "LogMessage",
    "TemplateGroup",
    "FittingState",
    "ResultSerializationError",
    "ResultShaper",
    "fit_result",
    "cap_message_ids",
    "content_hash",
    "deduplicate",
    "parse_field_list",
    "project",
    "truncate_text",
    "templateize",
]
