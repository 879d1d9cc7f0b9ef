# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Byte-budget fitting for tool results.

A result is shrunk in ordered phases until its JSON form fits the budget:

  Phase 1: content truncation
      Cut embedded text (message bodies, templates) to 500, 200, 100, 50 bytes.

  Phase 2: count reduction
      Halve the number of entries, at most 20 times, until the shape
      reports it cannot shrink further.

  Fallback
      A metadata-only result, returned regardless of size.

Each result shape plugs in through a ResultShaper. Fitting never fails on
size; an oversized best effort is still returned, marked truncated.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

TRUNCATION_STEPS = (500, 200, 100, 50)
MAX_REDUCTIONS = 20
TRUNCATED_KEY = "response_truncated"


class ResultSerializationError(Exception):
    """Raised when a result cannot be encoded as JSON."""


class ResultShaper(ABC):
    """Shrinking operations for one result shape.

    Attributes:
        payload (dict[str, Any]): The mutable result being fitted.
    """

    def __init__(self, payload: dict[str, Any]) -> None:
        self.payload = payload

    @abstractmethod
    def truncate_content(self, max_len: int) -> None:
        """Shorten embedded text fields in place to ``max_len`` bytes."""

    @abstractmethod
    def reduce_count(self) -> bool:
        """Roughly halve the number of entries.

        Returns:
            bool: ``False`` when no further reduction is possible.
        """

    def fallback(self) -> Optional[dict[str, Any]]:
        """Return a minimal metadata-only result, or None if the shape has none."""
        return None


@dataclass
class FittingState:
    """Outcome of fitting a result.

    Attributes:
        payload (dict[str, Any]): The result that was serialized.
        max_size (int): Byte budget; ``<= 0`` disables fitting.
        phase (str): Last phase reached: "passthrough", "fit", "content",
            "count", "fallback" or "best_effort".
        truncated (bool): Whether content was shortened or dropped. Never
            reset once set.
        text (str): The serialized result.
    """

    payload: dict[str, Any]
    max_size: int
    phase: str = "fit"
    truncated: bool = False
    text: str = ""

    def mark_truncated(self) -> None:
        self.truncated = True
        self.payload[TRUNCATED_KEY] = True

    def serialize(self) -> bool:
        """Encode the payload and report whether it fits the budget."""
        self.text = serialize_result(self.payload)
        return len(self.text.encode("utf-8")) <= self.max_size


def serialize_result(payload: dict[str, Any]) -> str:
    """Encode a result dict as JSON text.

    Raises:
        ResultSerializationError: If the payload holds values JSON cannot encode.
    """
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ResultSerializationError(f"failed to serialize response: {e}") from e


def fit_result(shaper: ResultShaper, max_size: int) -> FittingState:
    """Shrink a result until its JSON form fits ``max_size`` bytes.

    Args:
        shaper (ResultShaper): The result and its shrinking operations.
        max_size (int): Byte budget. ``<= 0`` returns the payload unchanged.

    Returns:
        FittingState: The serialized result and how it was obtained. The text
            may still exceed the budget when no fallback exists.

    Raises:
        ResultSerializationError: If the payload cannot be encoded.
    """
    state = FittingState(payload=shaper.payload, max_size=max_size)

    if max_size <= 0:
        state.phase = "passthrough"
        state.text = serialize_result(state.payload)
        return state

    if state.serialize():
        return state

    state.phase = "content"
    for max_len in TRUNCATION_STEPS:
        shaper.truncate_content(max_len)
        state.mark_truncated()
        if state.serialize():
            logger.info("Fitted response by truncating content to %d bytes", max_len)
            return state

    state.phase = "count"
    for _ in range(MAX_REDUCTIONS):
        if not shaper.reduce_count():
            break
        state.mark_truncated()
        if state.serialize():
            logger.info("Fitted response by reducing entry count")
            return state

    minimal = shaper.fallback()
    if minimal is not None:
        logger.info("Response exceeds %d bytes after reduction, returning metadata only", max_size)
        state.payload = minimal
        state.phase = "fallback"
        state.mark_truncated()
        state.serialize()
        return state

    state.phase = "best_effort"
    state.mark_truncated()
    state.serialize()
    logger.warning(
        "Response still %d bytes over budget of %d",
        len(state.text.encode("utf-8")) - max_size,
        max_size,
    )
    return state
