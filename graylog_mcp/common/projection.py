# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Field projection and text truncation helpers.

The same projection is used for plain search results, dedup groups and
context windows, so a ``fields`` filter looks identical in every output shape.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from graylog_mcp.common.models import (
    BODY_FIELD,
    ID_FIELD,
    SOURCE_FIELD,
    TIMESTAMP_FIELD,
    LogMessage,
)

TRUNCATION_SUFFIX = "...[truncated]"


def parse_field_list(fields: str) -> list[str]:
    """Split a comma-separated field list, dropping blanks.

    Args:
        fields (str): Comma-separated field names, e.g. "source, level".

    Returns:
        list[str]: Stripped, non-empty field names in input order.
    """
    if not fields:
        return []
    return [f.strip() for f in fields.split(",") if f.strip()]


def project(
    message: LogMessage,
    allowed_fields: Optional[Iterable[str]] = None,
    *,
    include_id: bool = True,
) -> dict[str, Any]:
    """Project a message down to the requested fields.

    Identity fields (``_id``, ``timestamp``, ``source``) and the body are
    always kept. With no ``allowed_fields`` every extra field is kept.

    Args:
        message (LogMessage): The message to project.
        allowed_fields (Optional[Iterable[str]]): Extra fields to keep.
        include_id (bool): Whether ``_id`` is part of the output. Dedup groups
            list their ids separately and drop it.

    Returns:
        dict[str, Any]: A new flat field map.
    """
    result: dict[str, Any] = {}
    if include_id:
        result[ID_FIELD] = message.id
    result[TIMESTAMP_FIELD] = message.timestamp
    result[SOURCE_FIELD] = message.source
    result[BODY_FIELD] = message.message

    allowed = set(allowed_fields or ())
    for name, value in message.extra.items():
        if not allowed or name in allowed:
            result[name] = value
    return result


def truncate_text(text: str, max_bytes: int) -> str:
    """Truncate text to at most ``max_bytes`` UTF-8 bytes.

    The cut never splits a character. When truncation happens the suffix
    ``...[truncated]`` is appended, so the result may exceed ``max_bytes`` by
    the suffix length.

    Args:
        text (str): Text to truncate.
        max_bytes (int): Maximum encoded length to keep.

    Returns:
        str: The original text if it fits, otherwise the truncated text.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    kept = encoded[:max(max_bytes, 0)].decode("utf-8", errors="ignore")
    return kept + TRUNCATION_SUFFIX
