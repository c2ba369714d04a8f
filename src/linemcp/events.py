"""Advisory events emitted by the dispatch engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union


@dataclass(frozen=True)
class ServerStarted:
    name: str
    version: str


@dataclass(frozen=True)
class ServerStopped:
    name: str


@dataclass(frozen=True)
class ToolExecuted:
    """Outcome of a single ``tools/call``.

    Attributes:
        tool_name: Name requested by the client.
        success: Whether the tool returned a response without raising.
        duration: Wall-clock execution time in seconds.
        error_message: Failure message when ``success`` is false.
    """

    tool_name: str
    success: bool
    duration: float
    error_message: str | None = None


ServerEvent = Union[ServerStarted, ServerStopped, ToolExecuted]
EventListener = Callable[[ServerEvent], None]
