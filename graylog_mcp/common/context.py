# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context window assembly around a target message.

Two searches are issued from the target's timestamp: one descending into
the past, one ascending into the future. Both bounds include the target
timestamp, so messages sharing it may show up on either side; results are
overfetched and deduplicated by id to make up for that.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

import anyio
import httpx

from graylog_mcp.common.models import ContextWindow, IndexedMessage
from graylog_mcp.graylog import GraylogAPIError, GraylogClient, SearchParams

logger = logging.getLogger(__name__)

EPOCH_START = "1970-01-01T00:00:00.000Z"
FAR_FUTURE = "2099-12-31T23:59:59.999Z"


def overfetch_limit(requested: int, multiplier: int, ceiling: int) -> int:
    """Fetch size for one side; ``+1`` leaves room for the target itself."""
    return min(requested * multiplier + 1, ceiling)


def without_id(messages: Iterable[IndexedMessage], message_id: str) -> list[IndexedMessage]:
    return [m for m in messages if m.message.id != message_id]


def unique_by_id(messages: Iterable[IndexedMessage]) -> list[IndexedMessage]:
    """Drop repeated ids, keeping the first. Messages without an id are kept."""
    seen: set[str] = set()
    result: list[IndexedMessage] = []
    for m in messages:
        if m.message.id:
            if m.message.id in seen:
                continue
            seen.add(m.message.id)
        result.append(m)
    return result


def merge_context(
    target_id: str,
    descending: Sequence[IndexedMessage],
    ascending: Sequence[IndexedMessage],
    before: int,
    after: int,
) -> tuple[list[IndexedMessage], list[IndexedMessage]]:
    """Merge the two directional batches into ``before``/``after`` lists.

    ``before`` is settled first and wins any id it shares with ``after``. Each
    side keeps the messages closest to the target.

    Args:
        target_id (str): Id of the target message, excluded from both sides.
        descending (Sequence[IndexedMessage]): Newest-first batch ending at
            the target timestamp.
        ascending (Sequence[IndexedMessage]): Oldest-first batch starting at
            the target timestamp.
        before (int): Number of messages wanted before the target.
        after (int): Number of messages wanted after the target.

    Returns:
        tuple[list[IndexedMessage], list[IndexedMessage]]: Both sides in
            chronological order.
    """
    older = without_id(descending, target_id)
    older.reverse()
    older = unique_by_id(older)
    older = older[-before:] if before > 0 else []

    claimed = {m.message.id for m in older if m.message.id}
    newer = unique_by_id(without_id(ascending, target_id))
    newer = [m for m in newer if not m.message.id or m.message.id not in claimed][:after]
    return older, newer


async def assemble_context(
    client: GraylogClient,
    target: IndexedMessage,
    before: int,
    after: int,
    *,
    fields: Optional[list[str]] = None,
    stream_ids: Optional[list[str]] = None,
    overfetch_multiplier: int = 3,
    max_fetch_per_side: int = 1501,
) -> ContextWindow:
    """Fetch and merge the messages surrounding ``target``.

    A failing side is recorded on the window and comes back empty; the other
    side is still returned.

    Args:
        client (GraylogClient): Search backend.
        target (IndexedMessage): The already fetched target message.
        before (int): Messages wanted before the target.
        after (int): Messages wanted after the target.
        fields (Optional[list[str]]): Fields to request from Graylog.
        stream_ids (Optional[list[str]]): Restrict both searches to streams.
        overfetch_multiplier (int): Overfetch factor per side.
        max_fetch_per_side (int): Absolute fetch ceiling per side.

    Returns:
        ContextWindow: The merged window with completeness flags.
    """
    timestamp = target.message.timestamp
    batches: dict[str, list[IndexedMessage]] = {"desc": [], "asc": []}
    errors: dict[str, str] = {}

    async def _fetch(direction: str, requested: int, time_from: str, time_to: str) -> None:
        params = SearchParams(
            query="*",
            time_from=time_from,
            time_to=time_to,
            limit=overfetch_limit(requested, overfetch_multiplier, max_fetch_per_side),
            sort=f"timestamp:{direction}",
            fields=list(fields or []),
            stream_ids=list(stream_ids or []),
        )
        try:
            batch = await client.search(params)
        except (GraylogAPIError, httpx.HTTPError) as e:
            logger.warning("Context search (%s) failed: %s", direction, e)
            errors[direction] = str(e) or type(e).__name__
            return
        batches[direction] = batch.messages

    if not timestamp:
        # Both searches are anchored at the target timestamp.
        logger.warning("Target message %s has no timestamp, skipping context search", target.message.id)
        if before > 0:
            errors["desc"] = "target message has no timestamp"
        if after > 0:
            errors["asc"] = "target message has no timestamp"
        before_count, after_count = 0, 0
    else:
        before_count, after_count = before, after

    async with anyio.create_task_group() as tg:
        if before_count > 0:
            tg.start_soon(_fetch, "desc", before, EPOCH_START, timestamp)
        if after_count > 0:
            tg.start_soon(_fetch, "asc", after, timestamp, FAR_FUTURE)

    older, newer = merge_context(target.message.id, batches["desc"], batches["asc"], before, after)
    return ContextWindow(
        target=target,
        before=older,
        after=newer,
        before_incomplete=len(older) < before,
        after_incomplete=len(newer) < after,
        before_error=errors.get("desc"),
        after_error=errors.get("asc"),
    )
