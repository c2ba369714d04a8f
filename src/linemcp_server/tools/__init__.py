"""Tool registration helpers for the file-system server."""

from __future__ import annotations

import os
from collections.abc import Sequence

from linemcp.tools import Tool
from linemcp_server.security import normalize_directories
from linemcp_server.tools.archive import archive_operations_tool
from linemcp_server.tools.common import AllowedDirectories
from linemcp_server.tools.directory import directory_tree_tool, list_directory_tool
from linemcp_server.tools.read import read_file_tool, read_multiple_files_tool
from linemcp_server.tools.search import (
    get_file_info_tool,
    list_allowed_directories_tool,
    search_files_tool,
)
from linemcp_server.tools.write import (
    create_directory_tool,
    move_file_tool,
    write_file_tool,
)


def build_tools(
    allowed_directories: Sequence[str | os.PathLike[str]] = (),
) -> list[Tool]:
    """Instantiate all file-system tools confined to ``allowed_directories``.

    An empty sequence confines the tools to the current working directory.
    """
    allowed = AllowedDirectories(normalize_directories(allowed_directories))
    return [
        read_file_tool(allowed),
        read_multiple_files_tool(allowed),
        write_file_tool(allowed),
        create_directory_tool(allowed),
        move_file_tool(allowed),
        list_directory_tool(allowed),
        directory_tree_tool(allowed),
        search_files_tool(allowed),
        get_file_info_tool(allowed),
        list_allowed_directories_tool(allowed),
        archive_operations_tool(allowed),
    ]
