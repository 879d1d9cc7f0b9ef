# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Content-based message deduplication."""
from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable, Optional, Sequence, Union

from graylog_mcp.common.models import (
    BODY_FIELD,
    ID_FIELD,
    SOURCE_FIELD,
    TIMESTAMP_FIELD,
    DedupGroup,
    IndexedMessage,
    LogMessage,
    TemplateGroup,
)

# Never part of a content hash, even when allow-listed.
_IDENTITY_FIELDS = frozenset({ID_FIELD, TIMESTAMP_FIELD, "index"})


def _hashable_fields(message: LogMessage) -> dict[str, Any]:
    fields: dict[str, Any] = {
        SOURCE_FIELD: message.source,
        BODY_FIELD: message.message,
    }
    fields.update(message.extra)
    return {k: v for k, v in fields.items() if k not in _IDENTITY_FIELDS}


def _encode_extra(value: Any) -> Any:
    """JSON fallback for non-JSON field values; sets encode in sorted order."""
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    return str(value)


def content_hash(message: LogMessage, hash_fields: Optional[Iterable[str]] = None) -> str:
    """Compute a deterministic hash of a message's content.

    Identity fields (``_id``, ``timestamp``, ``index``) are always excluded.

    Args:
        message (LogMessage): The message to hash.
        hash_fields (Optional[Iterable[str]]): If given, only these fields
            are hashed.

    Returns:
        str: SHA-256 hex digest of the canonical field list.
    """
    fields = _hashable_fields(message)
    if hash_fields:
        wanted = set(hash_fields)
        fields = {k: v for k, v in fields.items() if k in wanted}

    canonical = [[k, fields[k]] for k in sorted(fields)]
    raw = json.dumps(
        canonical, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=_encode_extra,
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def deduplicate(
    messages: Sequence[IndexedMessage],
    hash_fields: Optional[Iterable[str]] = None,
) -> list[DedupGroup]:
    """Group content-identical messages, keeping first-occurrence order.

    Args:
        messages (Sequence[IndexedMessage]): The batch to group.
        hash_fields (Optional[Iterable[str]]): Restrict hashing to these fields.

    Returns:
        list[DedupGroup]: One group per distinct content hash. Every group's
            ``message_ids`` holds all member ids; cap them with
            ``cap_message_ids``.
    """
    hash_fields = list(hash_fields) if hash_fields else None
    positions: dict[str, int] = {}
    groups: list[DedupGroup] = []

    for item in messages:
        key = content_hash(item.message, hash_fields)
        pos = positions.get(key)
        if pos is None:
            positions[key] = len(groups)
            groups.append(DedupGroup(
                message=item.message,
                index=item.index,
                count=1,
                message_ids=[item.message.id],
            ))
        else:
            group = groups[pos]
            group.count += 1
            group.message_ids.append(item.message.id)

    return groups


def cap_message_ids(groups: Iterable[Union[DedupGroup, TemplateGroup]], max_ids: int) -> None:
    """Keep at most ``max_ids`` sample ids per group. Counts are left as-is."""
    for group in groups:
        if len(group.message_ids) > max_ids:
            group.message_ids = group.message_ids[:max_ids]
