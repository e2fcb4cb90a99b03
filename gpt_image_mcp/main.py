import argparse
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from mcp.server.fastmcp import FastMCP

from gpt_image_mcp.api.router import register_tools
from gpt_image_mcp.config import settings
from gpt_image_mcp.core.logging import configure_logging
from gpt_image_mcp.services import openai_images

logger = structlog.get_logger()

LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]

USAGE = """\
OpenAI GPT Image MCP Server

Usage:
  gpt-image-mcp

This starts the MCP server on stdio. Make sure to set your OPENAI_API_KEY environment variable.

For MCP client configuration, use:
  {
    "command": "gpt-image-mcp",
    "env": {
      "OPENAI_API_KEY": "your-api-key-here"
    }
  }
"""

INSTRUCTIONS = """\
Create and edit images with OpenAI gpt-image-1.

- create-image: generate images from a prompt.
- edit-image: edit an image given as an absolute path or base64 string, with an optional mask.

Sizes accept 1024x1024, 1536x1024, 1024x1536, auto, or ratios such as 16:9, square or portrait.
Results larger than 1MB are saved to disk and returned as file:// paths instead of inline base64.
"""


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    try:
        yield
    finally:
        await openai_images.close_client()


def create_server() -> FastMCP:
    server = FastMCP(settings.app_name, instructions=INSTRUCTIONS, lifespan=lifespan)
    register_tools(server)
    return server


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gpt-image-mcp",
        description=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        type=str.lower,
        choices=LOG_LEVELS,
        help="log level written to stderr",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    configure_logging(args.log_level)
    server = create_server()
    logger.info("server_starting", name=settings.app_name, version=settings.app_version)
    try:
        server.run(transport="stdio")
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
