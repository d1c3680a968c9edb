#!/usr/bin/env python3
"""
Entry point for the CHUK Music Generation MCP Server.

This module provides the main entry point for the MCP server,
supporting multiple transport modes (stdio, http).
"""

import argparse
import asyncio
import logging
import os
from typing import Any

from chuk_mcp_musicgen.config import CONFIG_ENV
from chuk_mcp_musicgen.generation import ContentCache

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def serve(server: Any, cache: ContentCache, transport: str, port: int = 8000) -> None:
    """Run the server on a transport, closing the content cache on the way out."""
    try:
        if transport == "stdio":
            await server.run_stdio()
        else:
            await server.run_http(port=port)
    finally:
        await cache.close()


def main() -> None:
    """Main entry point with transport detection."""
    parser = argparse.ArgumentParser(description="CHUK Music Generation MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport mode (default: stdio)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="HTTP port (only for http transport)",
    )
    parser.add_argument(
        "--config",
        help="YAML settings file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.config:
        os.environ[CONFIG_ENV] = args.config

    # Import after argument parsing so settings see --config
    from chuk_mcp_musicgen.async_server import mcp, orchestrator

    if args.transport == "stdio":
        logger.info("Starting CHUK Music Generation MCP Server (stdio)")
    else:
        logger.info(f"Starting CHUK Music Generation MCP Server (http:{args.port})")
    asyncio.run(serve(mcp, orchestrator.cache, args.transport, args.port))


if __name__ == "__main__":
    main()
