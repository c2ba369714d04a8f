"""Adapters for exposing linemcp tools via FastMCP."""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError as FastMCPToolError
from fastmcp.tools import Tool as FastMCPTool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent

from linemcp.errors import ToolError
from linemcp.tools import Tool
from linemcp_server.tools import build_tools


class ToolAdapter(FastMCPTool):
    """Expose a :class:`linemcp.tools.Tool` as a FastMCP tool."""

    def __init__(self, tool: Tool) -> None:
        """Create a FastMCP tool wrapper for the provided tool."""
        super().__init__(
            name=tool.name,
            description=tool.description,
            parameters=tool.input_schema().to_dict(),
            tags=set(),
        )
        self._tool = tool

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        """Delegate to the wrapped tool and translate failures into tool errors."""
        try:
            response = await self._tool.execute(arguments)
        except ToolError as error:
            raise FastMCPToolError(error.message) from error
        if response.is_error:
            raise FastMCPToolError(response.text)
        return ToolResult(
            content=[
                TextContent(type="text", text=part.text) for part in response.content
            ]
        )


def to_fastmcp_tools(tools: Sequence[Tool]) -> list[FastMCPTool]:
    """Convert linemcp tools into FastMCP-compatible tools."""
    return [ToolAdapter(tool) for tool in tools]


def build_fastmcp_app(
    allowed_directories: Sequence[str | os.PathLike[str]] = (),
    *,
    name: str = "linemcp",
) -> tuple[FastMCP, list[Tool]]:
    """Create a FastMCP server instance with all file-system tools registered."""
    app = FastMCP(
        name=name,
        instructions="File-system utilities exposed over the Model Context Protocol.",
    )
    tools = build_tools(allowed_directories)
    for tool in to_fastmcp_tools(tools):
        app.add_tool(tool)
    return app, tools
