# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Graylog server standalone entry point."""
import logging

from graylog_mcp.servers import create_server
from graylog_mcp.config import settings

mcp = create_server("graylog")

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    cfg = settings.SERVERS["graylog"]
    mcp.run(transport=cfg.transport)
