"""Transaction and task queue exposed through an MCP server."""

__version__ = "0.1.0"
