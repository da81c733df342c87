"""MCP server for Flexible Scaffold."""

from .server import ScaffoldTools, create_server, run_stdio

__all__ = ["ScaffoldTools", "create_server", "run_stdio"]
