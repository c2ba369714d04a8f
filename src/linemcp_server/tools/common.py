"""Shared helpers for file-system tools."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

from linemcp.errors import ToolError
from linemcp.protocol import ToolResponse
from linemcp_server.security import validate_path

logger = logging.getLogger(__name__)

#: Maximum number of per-entry lines echoed back by bulk operations.
MAX_LISTED_RESULTS = 20


class AllowedDirectories:
    """Resolved directory roots a tool set may touch."""

    def __init__(self, roots: Sequence[Path]) -> None:
        self.roots = list(roots)

    def resolve(self, path: str) -> Path:
        """Validate a client path against the roots."""
        return validate_path(path, self.roots)

    def __iter__(self) -> Iterator[Path]:
        return iter(self.roots)


def guarded(action: str, operation: Callable[[], str]) -> ToolResponse:
    """Run ``operation`` and turn ordinary failures into an error response.

    :class:`ToolError` (cancellation included) propagates to the dispatch engine.
    """
    try:
        return ToolResponse.success(operation())
    except ToolError:
        raise
    except (OSError, ValueError) as exc:
        logger.info("%s failed: %s", action, exc)
        return ToolResponse.error(f"Error {action}: {_describe(exc)}")


def _describe(exc: BaseException) -> str:
    if isinstance(exc, OSError) and exc.strerror:
        target = f": '{exc.filename}'" if exc.filename else ""
        return f"{exc.strerror}{target}"
    return str(exc)


def summarize_lines(lines: Sequence[str], limit: int = MAX_LISTED_RESULTS) -> list[str]:
    """Indent at most ``limit`` lines and note how many were left out."""
    shown = [f"  {line}" for line in lines[:limit]]
    if len(lines) > limit:
        shown.append(f"  ... and {len(lines) - limit} more files")
    return shown
