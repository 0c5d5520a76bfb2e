"""Entrypoint for the transaction queue MCP server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from txqueue_mcp import __version__
from txqueue_mcp.app import AppContext, build_app_context
from txqueue_mcp.config import load_settings
from txqueue_mcp.logging_utils import configure_logging
from txqueue_mcp.mcp_runtime import MCPServer
from txqueue_mcp.tools import register_tools

logger = logging.getLogger(__name__)


def build_server(ctx: AppContext) -> MCPServer:
    """Create the MCP server and register the tools bound to ``ctx``."""

    settings = ctx.settings
    server = MCPServer(
        name=settings.server.name,
        version=__version__,
        instructions=settings.server.instructions,
    )

    # FastMCP installs its own handlers; re-apply ours after it is created.
    configure_logging(settings.logging)

    logger.info("Initializing %s v%s", settings.server.name, __version__)
    logger.info(
        "History limit %d operations, %d background workers",
        settings.queue.max_history,
        settings.queue.background_workers,
    )
    register_tools(server, ctx)
    return server


def run_entrypoint() -> None:
    """Build the application context, serve over stdio and release it on exit."""
    settings = load_settings()
    configure_logging(settings.logging)
    ctx = build_app_context(settings)
    try:
        build_server(ctx).run()
    finally:
        ctx.close()


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
