"""Tool registration helpers.

Registers the status tools used to poll deferred work:
- get_transaction_status
- list_transactions
- get_task_status
"""

from __future__ import annotations

import logging

from txqueue_mcp.app import AppContext
from txqueue_mcp.mcp_runtime import MCPServer, ToolSpec
from txqueue_mcp.tools.status import build_status_tools

__all__ = ["get_tool_registry", "get_tool_specs", "register_tools"]

logger = logging.getLogger(__name__)


def get_tool_specs(ctx: AppContext) -> list[ToolSpec]:
    return build_status_tools(ctx)


def get_tool_registry(ctx: AppContext) -> dict[str, ToolSpec]:
    return {tool.name: tool for tool in get_tool_specs(ctx)}


def register_tools(server: MCPServer, ctx: AppContext) -> None:
    specs = get_tool_specs(ctx)
    for tool in specs:
        server.add_tool(tool)
    logger.info("Registered %d tools: %s", len(specs), ", ".join(tool.name for tool in specs))
