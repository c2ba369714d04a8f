"""File-system MCP server built on :mod:`linemcp`."""

from linemcp_server.security import validate_path
from linemcp_server.tools import build_tools

__all__ = ["build_tools", "validate_path"]
