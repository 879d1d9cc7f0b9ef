# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Log template extraction.

Message bodies are fed line by line to a Drain3 template miner. The mined
clusters are then mapped back to message ids and ordered by frequency.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from drain3 import TemplateMiner
from drain3.masking import MaskingInstruction
from drain3.template_miner_config import TemplateMinerConfig

from graylog_mcp.common.dedup import cap_message_ids
from graylog_mcp.common.models import IndexedMessage, TemplateGroup

logger = logging.getLogger(__name__)

_MASKS = (
    (r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}", "UUID"),
    (r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}", "IP"),
    (r"0x[0-9a-fA-F]+", "HEX"),
)


@dataclass
class MinedTemplate:
    """One template produced by the miner.

    Attributes:
        template (str): Wildcarded pattern, e.g. "Connection to <IP> failed".
        line_ids (list[int]): Positions of the input lines it covers.
    """

    template: str
    line_ids: list[int] = field(default_factory=list)


def _new_miner() -> TemplateMiner:
    config = TemplateMinerConfig()
    config.masking_instructions = [MaskingInstruction(pattern, mask) for pattern, mask in _MASKS]
    return TemplateMiner(config=config)


def to_single_line(text: str) -> str:
    """Replace line breaks with spaces so a message is one miner line."""
    return text.replace("\r", " ").replace("\n", " ")


def mine_templates(lines: Sequence[str]) -> list[MinedTemplate]:
    """Run the template miner over single-line inputs.

    A fresh in-memory miner is used per call; nothing is persisted.

    Args:
        lines (Sequence[str]): One logical line per message.

    Returns:
        list[MinedTemplate]: One entry per cluster, in cluster creation order.
    """
    miner = _new_miner()
    members: dict[int, list[int]] = {}
    for line_id, line in enumerate(lines):
        change = miner.add_log_message(line)
        members.setdefault(change["cluster_id"], []).append(line_id)

    return [
        MinedTemplate(template=cluster.get_template(), line_ids=members.get(cluster.cluster_id, []))
        for cluster in miner.drain.clusters
    ]


def group_templates(mined: Sequence[MinedTemplate], message_ids: Sequence[str]) -> list[TemplateGroup]:
    """Resolve mined templates to message ids and order them by frequency.

    Equal counts keep the template whose first line came earlier in front.

    Args:
        mined (Sequence[MinedTemplate]): Miner output.
        message_ids (Sequence[str]): Message id for each input line position.

    Returns:
        list[TemplateGroup]: Groups sorted by count, most frequent first.
            ``message_ids`` are not capped here.
    """
    ranked: list[tuple[int, TemplateGroup]] = []
    for item in mined:
        line_ids = sorted(i for i in item.line_ids if 0 <= i < len(message_ids))
        if not line_ids:
            continue
        group = TemplateGroup(
            template=item.template,
            count=len(line_ids),
            message_ids=[message_ids[i] for i in line_ids],
        )
        ranked.append((line_ids[0], group))

    ranked.sort(key=lambda pair: (-pair[1].count, pair[0]))
    return [group for _, group in ranked]


def templateize(messages: Sequence[IndexedMessage], max_ids: int = 5) -> list[TemplateGroup]:
    """Group messages into log templates.

    Args:
        messages (Sequence[IndexedMessage]): Messages to group.
        max_ids (int): Sample ids kept per template.

    Returns:
        list[TemplateGroup]: Templates sorted by count descending. Empty input
            gives an empty list.
    """
    if not messages:
        return []

    lines = [to_single_line(item.message.message) for item in messages]
    ids = [item.message.id for item in messages]

    groups = group_templates(mine_templates(lines), ids)
    cap_message_ids(groups, max_ids)
    logger.debug("Mined %d templates from %d messages", len(groups), len(messages))
    return groups
