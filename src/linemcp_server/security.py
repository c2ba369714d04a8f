"""Path confinement for file-system tools."""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def normalize_directories(directories: Sequence[str | os.PathLike[str]]) -> list[Path]:
    """Resolve allowed directories, defaulting to the current working directory."""
    if not directories:
        return [Path.cwd().resolve()]
    return [Path(directory).expanduser().resolve() for directory in directories]


def validate_path(
    path: str | os.PathLike[str], allowed_directories: Sequence[Path]
) -> Path:
    """Resolve ``path`` and ensure it lies inside one of ``allowed_directories``.

    Symbolic links are resolved before the check, so links pointing outside the
    allowed roots are rejected as well.

    Args:
        path: Path supplied by a client.
        allowed_directories: Resolved directory roots.

    Raises:
        ValueError: If ``path`` is empty.
        PermissionError: If the resolved path is outside every allowed directory.

    Returns:
        The resolved absolute path.
    """
    if not str(path).strip():
        raise ValueError("Path cannot be empty")
    resolved = Path(path).expanduser().resolve()
    for root in allowed_directories:
        if _is_within(resolved, root):
            return resolved
    raise PermissionError(f"Access denied: Path '{path}' is outside allowed directories")
