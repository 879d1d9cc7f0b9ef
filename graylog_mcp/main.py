# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Multi-server runner entry point."""
import logging

import anyio

from graylog_mcp.servers import create_server
from graylog_mcp.config import settings

logger = logging.getLogger(__name__)


async def main():
    """Start all configured MCP servers concurrently using anyio task groups."""
    servers = []
    for key, cfg in settings.SERVERS.items():
        servers.append((create_server(key), cfg))

    async with anyio.create_task_group() as tg:
        for mcp, cfg in servers:
            logger.info("Starting %s (%s)", cfg.name, cfg.transport)
            match cfg.transport:
                case "stdio":
                    tg.start_soon(mcp.run_stdio_async)
                case "sse":
                    tg.start_soon(mcp.run_sse_async)
                case "streamable-http":
                    tg.start_soon(mcp.run_streamable_http_async)


def run() -> None:
    """Console script entry point."""
    # Logs go to stderr so they never mix with the stdio transport.
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    anyio.run(main)


if __name__ == "__main__":
    run()
