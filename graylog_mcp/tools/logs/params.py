# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Argument validation and response helpers shared by the log tools."""
import json
import logging
from typing import Any, Optional

import httpx

from graylog_mcp.common.fitting import ResultSerializationError, ResultShaper, fit_result
from graylog_mcp.graylog import GraylogAPIError

logger = logging.getLogger(__name__)


class ToolInputError(ValueError):
    """Raised when a tool argument is missing or invalid."""


def require(value: Optional[str], name: str) -> str:
    """Return a stripped string argument, rejecting empty values."""
    value = (value or "").strip()
    if not value:
        raise ToolInputError(f"'{name}' parameter is required")
    return value


def non_negative(value: Optional[int], name: str, default: int) -> int:
    """Validate an optional integer argument that must be >= 0."""
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolInputError(f"'{name}' must be an integer")
    if value < 0:
        raise ToolInputError(f"'{name}' must be >= 0")
    return value


def check_time_range(time_from: str, time_to: str) -> None:
    if bool(time_from) != bool(time_to):
        raise ToolInputError("'from_time' and 'to_time' must be used together")


def error_response(message: str, **extra: Any) -> str:
    """Build a JSON error payload."""
    return json.dumps({"error": message, **extra}, ensure_ascii=False)


def upstream_error(action: str, exc: Exception) -> str:
    """Describe a failed Graylog call as a JSON error payload."""
    if isinstance(exc, GraylogAPIError):
        message = str(exc)
    elif isinstance(exc, httpx.TimeoutException):
        message = f"{action} failed: request timed out"
    else:
        message = f"{action} failed: {exc}"
    logger.error("%s failed (%s): %s", action, type(exc).__name__, exc)
    return error_response(message)


def fitted_response(shaper: ResultShaper, max_size: int) -> str:
    """Fit a result to ``max_size`` bytes and return its JSON text."""
    try:
        return fit_result(shaper, max_size).text
    except ResultSerializationError as e:
        logger.error("Response serialization failed: %s", e)
        return error_response(str(e))
