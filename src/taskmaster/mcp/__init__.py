"""Model Context Protocol integration for Task Master."""

from .server import TaskMasterMCPServer, create_server

__all__ = ["TaskMasterMCPServer", "create_server"]
