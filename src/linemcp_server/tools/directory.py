"""Directory listing tools."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import Field

from linemcp.cancellation import CancellationToken
from linemcp.protocol import ToolResponse
from linemcp.tools import ToolDefinition, ToolParameters
from linemcp_server.tools.common import AllowedDirectories, guarded


class ListDirectoryParams(ToolParameters):
    """Parameters for the list_directory tool."""

    path: str = Field(description="Path of the directory to list")


class DirectoryTreeParams(ToolParameters):
    """Parameters for the directory_tree tool."""

    path: str = Field(description="Path to the directory to create tree from")


def _build_tree(
    directory: Path, allowed: AllowedDirectories, cancellation: CancellationToken
) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for child in directory.iterdir():
        cancellation.raise_if_cancelled()
        if child.is_dir():
            # Symlinked directories that escape the roots are listed but not walked.
            try:
                allowed.resolve(str(child))
            except PermissionError:
                children: list[dict[str, Any]] = []
            else:
                children = _build_tree(child, allowed, cancellation)
            entries.append(
                {"name": child.name, "type": "directory", "children": children}
            )
        else:
            entries.append({"name": child.name, "type": "file"})
    entries.sort(key=lambda entry: (entry["type"] != "directory", entry["name"]))
    return entries


def list_directory_tool(
    allowed: AllowedDirectories,
) -> ToolDefinition[ListDirectoryParams]:
    """Create the list_directory tool definition."""

    def handler(
        params: ListDirectoryParams, cancellation: CancellationToken
    ) -> ToolResponse:
        def listing() -> str:
            directory = allowed.resolve(params.path)
            lines = [
                f"{'[DIR]' if entry.is_dir() else '[FILE]'} {entry.name}"
                for entry in sorted(directory.iterdir(), key=lambda item: item.name)
            ]
            return "\n".join(lines)

        return guarded("listing directory", listing)

    return ToolDefinition(
        name="list_directory",
        description=(
            "Get a detailed listing of all files and directories in a specified path. "
            "Entries are prefixed with [DIR] or [FILE]. Only works within allowed "
            "directories."
        ),
        parameters_model=ListDirectoryParams,
        handler=handler,
    )


def directory_tree_tool(
    allowed: AllowedDirectories,
) -> ToolDefinition[DirectoryTreeParams]:
    """Create the directory_tree tool definition."""

    def handler(
        params: DirectoryTreeParams, cancellation: CancellationToken
    ) -> ToolResponse:
        def tree() -> str:
            root = allowed.resolve(params.path)
            return json.dumps(_build_tree(root, allowed, cancellation), indent=2)

        return guarded("building directory tree", tree)

    return ToolDefinition(
        name="directory_tree",
        description=(
            "Get a recursive tree view of files and directories as a JSON structure. "
            "Each entry includes 'name', 'type' (file/directory) and, for directories, "
            "a 'children' array. Only works within allowed directories."
        ),
        parameters_model=DirectoryTreeParams,
        handler=handler,
    )
