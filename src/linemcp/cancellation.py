"""Cooperative cancellation shared between the server loop and tools."""

from __future__ import annotations

import threading

from linemcp.errors import ToolCancelledError


class CancellationToken:
    """Thread-safe, one-shot cancellation flag.

    A single token is handed to :meth:`linemcp.server.MCPServer.run`; the loop checks it
    between messages and passes it on to every tool execution. Tools running in worker
    threads may poll it through :meth:`raise_if_cancelled`.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Trigger the token. Calling it more than once has no further effect."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`ToolCancelledError` if the token has been triggered."""
        if self._event.is_set():
            raise ToolCancelledError()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the final state."""
        return self._event.wait(timeout)
