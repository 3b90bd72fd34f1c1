"""MCP server exposing Task Master worktree tools."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from .tools import register_worktree_tools

logger = logging.getLogger(__name__)


class TaskMasterMCPServer:
    """MCP server that exposes the worktree lifecycle as tools.

    External MCP clients (Claude Desktop, Cursor, ...) pass an absolute
    ``project_root`` with every call; the server itself is project-agnostic.
    """

    def __init__(self, name: str = "task-master") -> None:
        self.mcp = FastMCP(name=name)
        register_worktree_tools(self.mcp)
        logger.info("Registered worktree tools")

    def run(self, transport: str = "stdio") -> None:
        """Run the server on ``transport`` until the client disconnects."""
        self.mcp.run(transport=transport)  # type: ignore[arg-type]


def create_server(name: str = "task-master") -> TaskMasterMCPServer:
    """Create a configured MCP server instance."""
    return TaskMasterMCPServer(name=name)
