# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Log message data model shared by search, grouping and context tools."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

ID_FIELD = "_id"
TIMESTAMP_FIELD = "timestamp"
SOURCE_FIELD = "source"
BODY_FIELD = "message"

CORE_FIELDS = frozenset({ID_FIELD, TIMESTAMP_FIELD, SOURCE_FIELD, BODY_FIELD})

# Graylog marks values removed by an extractor with this placeholder.
_CUT_PLACEHOLDER = "fullyCutByExtractor"


def _is_hidden_field(name: str) -> bool:
    return name.startswith("gl2_")


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass
class LogMessage:
    """A single Graylog message.

    Identity fields are pulled out as typed attributes; every other field
    passes through untouched in ``extra``.

    Attributes:
        id (str): The Graylog ``_id`` of the message.
        timestamp (str): ISO8601 timestamp as returned by Graylog.
        source (str): Originating host or service.
        message (str): The message body. Only truncation steps rewrite it.
        extra (dict[str, Any]): All remaining, non-internal fields.
    """

    id: str = ""
    timestamp: str = ""
    source: str = ""
    message: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_fields(cls, raw: dict[str, Any]) -> LogMessage:
        """Build a message from a raw Graylog field map.

        Graylog-internal ``gl2_*`` fields and extractor placeholders are dropped.

        Args:
            raw (dict[str, Any]): Field map as found in a search result or
                a message lookup.

        Returns:
            LogMessage: The parsed message.
        """
        extra = {
            k: v
            for k, v in raw.items()
            if k not in CORE_FIELDS and not _is_hidden_field(k) and v != _CUT_PLACEHOLDER
        }
        return cls(
            id=_as_str(raw.get(ID_FIELD)),
            timestamp=_as_str(raw.get(TIMESTAMP_FIELD)),
            source=_as_str(raw.get(SOURCE_FIELD)),
            message=_as_str(raw.get(BODY_FIELD)),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the flat field map, including ``_id``."""
        result: dict[str, Any] = {
            ID_FIELD: self.id,
            TIMESTAMP_FIELD: self.timestamp,
            SOURCE_FIELD: self.source,
            BODY_FIELD: self.message,
        }
        result.update(self.extra)
        return result


@dataclass
class IndexedMessage:
    """A message together with the index it was fetched from."""

    message: LogMessage
    index: str = ""


@dataclass
class Batch:
    """Messages returned by one search call.

    Attributes:
        messages (list[IndexedMessage]): Messages in backend order.
        total_results (int): Total matches reported by Graylog, which may
            exceed ``len(messages)``.
    """

    messages: list[IndexedMessage] = field(default_factory=list)
    total_results: int = 0


@dataclass
class DedupGroup:
    """Content-identical messages collapsed into one representative.

    Attributes:
        message (LogMessage): First message seen with this content.
        index (str): Index of the representative message.
        count (int): Number of messages in the group. Never reduced by capping.
        message_ids (list[str]): Ids of group members in insertion order,
            capped after grouping.
    """

    message: LogMessage
    index: str
    count: int = 1
    message_ids: list[str] = field(default_factory=list)


@dataclass
class TemplateGroup:
    """Structurally similar messages represented by a wildcarded template."""

    template: str
    count: int
    message_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template,
            "count": self.count,
            "message_ids": self.message_ids,
        }


@dataclass
class ContextWindow:
    """Messages surrounding a target message, in chronological order.

    Attributes:
        target (IndexedMessage): The message the window is built around.
        before (list[IndexedMessage]): Messages ending right before the target.
        after (list[IndexedMessage]): Messages starting right after the target.
        before_incomplete (bool): Fewer ``before`` messages than requested.
        after_incomplete (bool): Fewer ``after`` messages than requested.
        before_error (Optional[str]): Failure of the descending query, if any.
        after_error (Optional[str]): Failure of the ascending query, if any.
    """

    target: IndexedMessage
    before: list[IndexedMessage] = field(default_factory=list)
    after: list[IndexedMessage] = field(default_factory=list)
    before_incomplete: bool = False
    after_incomplete: bool = False
    before_error: Optional[str] = None
    after_error: Optional[str] = None

    @property
    def incomplete(self) -> bool:
        return self.before_incomplete or self.after_incomplete
