"""Tools for reading file contents."""

from __future__ import annotations

from pydantic import Field

from linemcp.cancellation import CancellationToken
from linemcp.protocol import ToolResponse
from linemcp.tools import ToolDefinition, ToolParameters
from linemcp_server.tools.common import AllowedDirectories, guarded


class ReadFileParams(ToolParameters):
    """Parameters for the read_file tool."""

    path: str = Field(description="Path to the file to read")


class ReadMultipleFilesParams(ToolParameters):
    """Parameters for the read_multiple_files tool."""

    paths: list[str] = Field(description="Array of file paths to read")


def read_file_tool(allowed: AllowedDirectories) -> ToolDefinition[ReadFileParams]:
    """Create the read_file tool definition."""

    def handler(params: ReadFileParams, cancellation: CancellationToken) -> ToolResponse:
        return guarded(
            "reading file",
            lambda: allowed.resolve(params.path).read_text(encoding="utf-8"),
        )

    return ToolDefinition(
        name="read_file",
        description=(
            "Read the complete contents of a file from the file system as UTF-8 text. "
            "Only works within allowed directories."
        ),
        parameters_model=ReadFileParams,
        handler=handler,
    )


def read_multiple_files_tool(
    allowed: AllowedDirectories,
) -> ToolDefinition[ReadMultipleFilesParams]:
    """Create the read_multiple_files tool definition."""

    def handler(
        params: ReadMultipleFilesParams, cancellation: CancellationToken
    ) -> ToolResponse:
        sections = []
        for path in params.paths:
            cancellation.raise_if_cancelled()
            try:
                content = allowed.resolve(path).read_text(encoding="utf-8")
            except (OSError, ValueError) as exc:
                sections.append(f"{path}: Error - {exc}")
            else:
                sections.append(f"{path}:\n{content}\n")
        return ToolResponse.success("\n---\n".join(sections))

    return ToolDefinition(
        name="read_multiple_files",
        description=(
            "Read the contents of multiple files at once. Each file's content is "
            "returned with its path as a reference, in the order requested. Failed "
            "reads for individual files do not stop the entire operation. Only works "
            "within allowed directories."
        ),
        parameters_model=ReadMultipleFilesParams,
        handler=handler,
    )
