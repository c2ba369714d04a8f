"""Thread-safe tool registry."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator

from linemcp.tools import Tool

logger = logging.getLogger(__name__)

RegistryListener = Callable[[str, str], None]


class ToolRegistry:
    """Mapping of tool names to tools, guarded by a lock.

    The lock only protects membership; tools returned by :meth:`get` or
    :meth:`list` stay usable after they are unregistered.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: dict[str, Tool] = {}
        self._lock = threading.Lock()
        self._listeners: list[RegistryListener] = []

    def register(self, tool: Tool) -> None:
        """Add a tool.

        Args:
            tool: Tool to register.

        Raises:
            ValueError: If the name is empty or already registered.

        """
        if not tool.name:
            raise ValueError("Tool name must be a non-empty string")
        with self._lock:
            if tool.name in self._tools:
                raise ValueError(f"Tool '{tool.name}' is already registered")
            self._tools[tool.name] = tool
        self._notify("registered", tool.name)

    def unregister(self, name: str) -> bool:
        """Remove a tool by name.

        Returns:
            ``True`` if the tool was present and removed, ``False`` otherwise.

        """
        with self._lock:
            removed = self._tools.pop(name, None) is not None
        if removed:
            self._notify("unregistered", name)
        return removed

    def get(self, name: str) -> Tool | None:
        with self._lock:
            return self._tools.get(name)

    def list(self) -> list[Tool]:
        """Snapshot of all registered tools in registration order."""
        with self._lock:
            return list(self._tools.values())

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def add_listener(self, listener: RegistryListener) -> None:
        """Call ``listener(action, name)`` after every membership change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: RegistryListener) -> None:
        """Stop calling ``listener``. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, action: str, name: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(action, name)
            except Exception:
                logger.exception("Registry listener failed for %s '%s'", action, name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self.list())
