"""
Research MCP server entry point (stdio transport).

Usage:
    python main.py
"""

import asyncio
import logging

import httpx

from common.config import settings
from common.logger import get_logger, setup_logging
from server.app import build_server

# Initialize logging
setup_logging()
logger = get_logger(__name__)


async def serve() -> None:
    timeout = httpx.Timeout(settings.http_timeout)
    headers = {"User-Agent": settings.user_agent}
    async with httpx.AsyncClient(timeout=timeout, headers=headers, follow_redirects=True) as http:
        server = build_server(http, settings)
        logger.info("Research MCP Server started on stdio")
        logger.info(f"Google Search: {'enabled' if settings.google_enabled else 'disabled'}")
        logger.info(f"Wikipedia: enabled (lang: {settings.default_language})")
        await server.run_stdio_async()


def main() -> None:
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Shutting down")
    logging.shutdown()


if __name__ == "__main__":
    main()
