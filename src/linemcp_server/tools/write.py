"""Tools that create, overwrite or move files and directories."""

from __future__ import annotations

import shutil

from pydantic import Field

from linemcp.cancellation import CancellationToken
from linemcp.protocol import ToolResponse
from linemcp.tools import ToolDefinition, ToolParameters
from linemcp_server.tools.common import AllowedDirectories, guarded


class WriteFileParams(ToolParameters):
    """Parameters for the write_file tool."""

    path: str = Field(description="Path to the file to write")
    content: str = Field(description="Content to write to the file")


class CreateDirectoryParams(ToolParameters):
    """Parameters for the create_directory tool."""

    path: str = Field(description="Path of the directory to create")


class MoveFileParams(ToolParameters):
    """Parameters for the move_file tool."""

    source: str = Field(description="Source path")
    destination: str = Field(description="Destination path")


def write_file_tool(allowed: AllowedDirectories) -> ToolDefinition[WriteFileParams]:
    """Create the write_file tool definition."""

    def handler(params: WriteFileParams, cancellation: CancellationToken) -> ToolResponse:
        def write() -> str:
            allowed.resolve(params.path).write_text(params.content, encoding="utf-8")
            return f"Successfully wrote to {params.path}"

        return guarded("writing file", write)

    return ToolDefinition(
        name="write_file",
        description=(
            "Create a new file or completely overwrite an existing file with new "
            "content. Only works within allowed directories."
        ),
        parameters_model=WriteFileParams,
        handler=handler,
    )


def create_directory_tool(
    allowed: AllowedDirectories,
) -> ToolDefinition[CreateDirectoryParams]:
    """Create the create_directory tool definition."""

    def handler(
        params: CreateDirectoryParams, cancellation: CancellationToken
    ) -> ToolResponse:
        def create() -> str:
            allowed.resolve(params.path).mkdir(parents=True, exist_ok=True)
            return f"Successfully created directory {params.path}"

        return guarded("creating directory", create)

    return ToolDefinition(
        name="create_directory",
        description=(
            "Create a new directory, including missing parents. Succeeds silently if "
            "the directory already exists. Only works within allowed directories."
        ),
        parameters_model=CreateDirectoryParams,
        handler=handler,
    )


def move_file_tool(allowed: AllowedDirectories) -> ToolDefinition[MoveFileParams]:
    """Create the move_file tool definition."""

    def handler(params: MoveFileParams, cancellation: CancellationToken) -> ToolResponse:
        def move() -> str:
            source = allowed.resolve(params.source)
            destination = allowed.resolve(params.destination)
            if not source.exists():
                raise FileNotFoundError(f"Source not found: {params.source}")
            if destination.exists():
                raise FileExistsError(f"Destination already exists: {params.destination}")
            shutil.move(str(source), str(destination))
            return f"Successfully moved {params.source} to {params.destination}"

        return guarded("moving file", move)

    return ToolDefinition(
        name="move_file",
        description=(
            "Move or rename files and directories. Fails if the destination already "
            "exists. Both source and destination must be within allowed directories."
        ),
        parameters_model=MoveFileParams,
        handler=handler,
    )
