"""Search and metadata tools."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import Field

from linemcp.cancellation import CancellationToken
from linemcp.protocol import ToolResponse
from linemcp.tools import NoArgumentToolDefinition, ToolDefinition, ToolParameters
from linemcp_server.tools.common import AllowedDirectories, guarded


class SearchFilesParams(ToolParameters):
    """Parameters for the search_files tool."""

    path: str = Field(description="Starting directory for search")
    pattern: str = Field(
        description=(
            "Search pattern - can be simple text, wildcard (* and ?), or regex "
            "(if patternType is set)"
        )
    )
    pattern_type: Literal["simple", "wildcard", "regex"] = Field(
        default="simple",
        alias="patternType",
        description="Type of pattern: 'simple' (default), 'wildcard', or 'regex'",
    )
    exclude_patterns: list[str] | None = Field(
        default=None,
        alias="excludePatterns",
        description="Path components to exclude from search",
    )


class GetFileInfoParams(ToolParameters):
    """Parameters for the get_file_info tool."""

    path: str = Field(description="Path to the file or directory")


def compile_pattern(pattern: str, pattern_type: str) -> re.Pattern[str]:
    """Build a case-insensitive matcher for entry names.

    Raises:
        ValueError: If a regex pattern does not compile.
    """
    if pattern_type == "wildcard":
        escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
        source = f"^{escaped}$"
    elif pattern_type == "regex":
        source = pattern
    else:
        source = re.escape(pattern)
    try:
        return re.compile(source, re.IGNORECASE)
    except re.error as exc:
        raise ValueError(f"Invalid pattern '{pattern}': {exc}") from exc


def _search(
    directory: Path,
    root: Path,
    matcher: re.Pattern[str],
    excluded: set[str],
    allowed: AllowedDirectories,
    cancellation: CancellationToken,
    results: list[str],
) -> None:
    try:
        allowed.resolve(str(directory))
        entries = list(directory.iterdir())
    except OSError:
        return

    for entry in entries:
        cancellation.raise_if_cancelled()
        parts = entry.relative_to(root).parts
        if any(part.lower() in excluded for part in parts):
            continue
        if matcher.search(entry.name):
            results.append(str(entry))
        if entry.is_dir():
            _search(entry, root, matcher, excluded, allowed, cancellation, results)


def search_files_tool(allowed: AllowedDirectories) -> ToolDefinition[SearchFilesParams]:
    """Create the search_files tool definition."""

    def handler(
        params: SearchFilesParams, cancellation: CancellationToken
    ) -> ToolResponse:
        def search() -> str:
            root = allowed.resolve(params.path)
            matcher = compile_pattern(params.pattern, params.pattern_type)
            excluded = {item.lower() for item in params.exclude_patterns or []}
            results: list[str] = []
            _search(root, root, matcher, excluded, allowed, cancellation, results)
            return "\n".join(sorted(results)) if results else "No matches found"

        return guarded("during search", search)

    return ToolDefinition(
        name="search_files",
        description=(
            "Recursively search for files and directories whose name matches a "
            "pattern. Supports 'simple' (partial text match), 'wildcard' (* and ?) "
            "and 'regex' pattern types. The search is case-insensitive and returns "
            "full paths. Only searches within allowed directories."
        ),
        parameters_model=SearchFilesParams,
        handler=handler,
    )


def _timestamp(value: float) -> str:
    return datetime.fromtimestamp(value).isoformat(sep=" ", timespec="seconds")


def get_file_info_tool(allowed: AllowedDirectories) -> ToolDefinition[GetFileInfoParams]:
    """Create the get_file_info tool definition."""

    def handler(
        params: GetFileInfoParams, cancellation: CancellationToken
    ) -> ToolResponse:
        def describe() -> str:
            path = allowed.resolve(params.path)
            info = path.stat()
            is_directory = path.is_dir()
            created = getattr(info, "st_birthtime", info.st_ctime)
            details = [
                f"size: {0 if is_directory else info.st_size}",
                f"created: {_timestamp(created)}",
                f"modified: {_timestamp(info.st_mtime)}",
                f"accessed: {_timestamp(info.st_atime)}",
                f"isDirectory: {str(is_directory).lower()}",
                f"isFile: {str(path.is_file()).lower()}",
                f"permissions: {info.st_mode & 0o777:o}",
            ]
            return "\n".join(details)

        return guarded("getting file info", describe)

    return ToolDefinition(
        name="get_file_info",
        description=(
            "Retrieve metadata about a file or directory: size, creation, "
            "modification and access times, type and permissions. Only works within "
            "allowed directories."
        ),
        parameters_model=GetFileInfoParams,
        handler=handler,
    )


def list_allowed_directories_tool(
    allowed: AllowedDirectories,
) -> NoArgumentToolDefinition:
    """Create the list_allowed_directories tool definition."""

    def handler(cancellation: CancellationToken) -> ToolResponse:
        listing = "\n".join(str(root) for root in allowed)
        return ToolResponse.success(f"Allowed directories:\n{listing}")

    return NoArgumentToolDefinition(
        name="list_allowed_directories",
        description=(
            "Returns the list of directories that this server is allowed to access. "
            "Use this before trying to access files."
        ),
        handler=handler,
    )
