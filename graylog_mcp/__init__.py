# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Graylog MCP server: log search shaped for language models."""

__version__ = "0.1.0"
