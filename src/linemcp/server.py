"""JSON-RPC dispatch engine for MCP tool servers.

:class:`MCPServer` owns a :class:`~linemcp.registry.ToolRegistry`, reads requests from a
:class:`~linemcp.transport.Transport` one at a time, routes them through a fixed
method table and writes exactly one response per non-notification request. Requests
are handled sequentially, so responses leave in the order requests arrived.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from pydantic import ValidationError

from linemcp.cancellation import CancellationToken
from linemcp.config import ServerOptions
from linemcp.errors import (
    JsonRpcErrorCode,
    RpcError,
    ToolCancelledError,
    ToolError,
    TransportError,
)
from linemcp.events import (
    EventListener,
    ServerEvent,
    ServerStarted,
    ServerStopped,
    ToolExecuted,
)
from linemcp.protocol import (
    InitializeResult,
    JsonRpcRequest,
    JsonRpcResponse,
    ServerCapabilities,
    ServerInfo,
    ToolCallParams,
    ToolResponse,
)
from linemcp.registry import ToolRegistry
from linemcp.tools import Tool
from linemcp.transport import Transport

logger = logging.getLogger(__name__)

MethodHandler = Callable[[Any, CancellationToken], Awaitable[Any]]

_TRANSPORT_MESSAGES = {
    JsonRpcErrorCode.PARSE_ERROR: "Parse error",
    JsonRpcErrorCode.INVALID_REQUEST: "Invalid request",
}


class ServerState(Enum):
    """Lifecycle of a server instance. Each instance serves one connection."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class MCPServer:
    """Registry-backed dispatcher speaking JSON-RPC over a transport."""

    def __init__(
        self,
        options: ServerOptions | None = None,
        registry: ToolRegistry | None = None,
    ) -> None:
        """Create an idle server.

        Args:
            options: Identity and capability flags. Defaults are used when omitted.
            registry: Registry to serve from. A new empty one is created when omitted.

        """
        self.options = options or ServerOptions()
        self._registry = registry if registry is not None else ToolRegistry()
        self._registry.add_listener(self._on_registry_change)
        self._listeners: list[EventListener] = []
        self._state = ServerState.IDLE
        self._methods: dict[str, MethodHandler] = {
            "initialize": self._handle_initialize,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
            "ping": self._handle_ping,
        }

    @property
    def name(self) -> str:
        return self.options.name

    @property
    def version(self) -> str:
        return self.options.version

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def capabilities(self) -> ServerCapabilities:
        """Capabilities derived from the options and the live registry."""
        return ServerCapabilities(
            tools={} if self.options.enable_tools and len(self._registry) else None,
            resources={} if self.options.enable_resources else None,
            prompts={} if self.options.enable_prompts else None,
        )

    def register_tool(self, tool: Tool) -> None:
        """Register a tool with the server.

        Args:
            tool: Tool to register.

        Raises:
            ValueError: If a tool with the same name is already registered.

        """
        self._registry.register(tool)

    def register_tools(self, *tools: Tool) -> None:
        """Register multiple tools at once.

        Args:
            *tools: Collection of tools to register.

        """
        for tool in tools:
            self.register_tool(tool)

    def unregister_tool(self, name: str) -> bool:
        """Remove a tool; return whether it was registered."""
        return self._registry.unregister(name)

    def available_tools(self) -> list[str]:
        """List the names of registered tools.

        Returns:
            Sorted list of tool names.

        """
        return sorted(self._registry.names())

    def to_catalog(self) -> dict[str, dict[str, Any]]:
        """Produce a catalog for discovery.

        Returns:
            Mapping of tool names to their wire descriptors.

        """
        return {tool.name: tool.descriptor().to_wire() for tool in self._registry}

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Receive lifecycle and tool-execution events.

        Listeners run synchronously on the server loop and must be quick. Exceptions
        they raise are logged and discarded.

        Returns:
            A callable that removes the listener.

        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def execute_tool(
        self,
        name: str,
        arguments: Any = None,
        cancellation: CancellationToken | None = None,
    ) -> ToolResponse:
        """Execute a registered tool and report the outcome to listeners.

        Args:
            name: Name of the registered tool to execute.
            arguments: Raw arguments passed through to the tool.
            cancellation: Token forwarded to the tool.

        Raises:
            ToolError: If the tool is unknown, rejects its arguments or fails.
                Unexpected exceptions are wrapped as ``ExecutionFailed``.

        Returns:
            The tool's response.

        """
        tool = self._registry.get(name)
        if tool is None:
            raise ToolError("ToolNotFound", f"Tool '{name}' not found")

        started = time.perf_counter()
        try:
            response = await tool.execute(arguments, cancellation)
        except ToolError as error:
            self._record(name, started, error.message)
            raise
        except Exception as exc:
            self._record(name, started, str(exc))
            raise ToolError(
                "ExecutionFailed", f"Tool '{name}' execution failed", str(exc)
            ) from exc

        self._record(name, started, response.text if response.is_error else None)
        return response

    async def run(
        self, transport: Transport, cancellation: CancellationToken | None = None
    ) -> None:
        """Serve requests from ``transport`` until it disconnects or is cancelled.

        Args:
            transport: Channel to read requests from and write responses to.
            cancellation: Token that stops the loop after the current message.

        Raises:
            RuntimeError: If the server has already been run.
            TransportError: If the underlying stream faults.

        """
        if self._state is not ServerState.IDLE:
            raise RuntimeError(f"Server cannot run from state '{self._state.value}'")

        token = cancellation or CancellationToken()
        self._state = ServerState.RUNNING
        logger.info("Starting %s %s", self.name, self.version)
        self._emit(ServerStarted(name=self.name, version=self.version))
        try:
            while not token.cancelled:
                try:
                    message = await transport.read_message(token)
                except TransportError as error:
                    if error.connection_closed:
                        raise
                    logger.warning("Rejected inbound message: %s", error)
                    await transport.write_message(
                        JsonRpcResponse.failure(
                            error.request_id,
                            error.code,
                            _TRANSPORT_MESSAGES.get(error.code, "Internal error"),
                            str(error),
                        ),
                        token,
                    )
                    continue

                if message is None:
                    break
                if isinstance(message, JsonRpcResponse):
                    logger.debug("Ignoring inbound response for id %r", message.id)
                    continue

                response = await self.handle_request(message, token)
                if response is not None:
                    await transport.write_message(response, token)
        finally:
            self._state = ServerState.DRAINING
            self._registry.remove_listener(self._on_registry_change)
            try:
                await transport.close()
            finally:
                self._emit(ServerStopped(name=self.name))
                self._state = ServerState.CLOSED
                logger.info("Stopped %s", self.name)

    async def handle_request(
        self, request: JsonRpcRequest, cancellation: CancellationToken | None = None
    ) -> JsonRpcResponse | None:
        """Dispatch one request.

        Never raises for per-request failures; they are converted into error
        responses.

        Returns:
            The response to send, or ``None`` for notifications.

        """
        token = cancellation or CancellationToken()
        logger.debug("Dispatching '%s' (id=%r)", request.method, request.id)
        try:
            method = self._methods.get(request.method)
            if method is None:
                raise RpcError(
                    JsonRpcErrorCode.METHOD_NOT_FOUND,
                    f"Method not found: {request.method}",
                )
            response = JsonRpcResponse.success(
                request.id, await method(request.params, token)
            )
        except RpcError as error:
            response = JsonRpcResponse.failure(
                request.id, error.code, error.message, error.data
            )
        except ToolCancelledError as error:
            logger.info("Request %r was cancelled", request.id)
            response = JsonRpcResponse.failure(
                request.id,
                JsonRpcErrorCode.INTERNAL_ERROR,
                "Request was cancelled",
                error.message,
            )
        except ToolError as error:
            logger.warning("Tool call failed: %s", error.message)
            response = JsonRpcResponse.failure(
                request.id,
                JsonRpcErrorCode.INVALID_REQUEST,
                error.message,
                error.details,
            )
        except Exception as exc:
            logger.exception("Internal error while handling '%s'", request.method)
            response = JsonRpcResponse.failure(
                request.id, JsonRpcErrorCode.INTERNAL_ERROR, "Internal error", str(exc)
            )

        if request.is_notification:
            logger.debug("No response for notification '%s'", request.method)
            return None
        return response

    async def _handle_initialize(
        self, params: Any, cancellation: CancellationToken
    ) -> dict[str, Any]:
        if isinstance(params, dict):
            logger.info(
                "Client initialized with protocol %s", params.get("protocolVersion")
            )
        result = InitializeResult(
            capabilities=self.capabilities,
            server_info=ServerInfo(name=self.name, version=self.version),
        )
        return result.to_wire()

    async def _handle_tools_list(
        self, params: Any, cancellation: CancellationToken
    ) -> dict[str, Any]:
        return {
            "tools": [tool.descriptor().to_wire() for tool in self._registry.list()]
        }

    async def _handle_tools_call(
        self, params: Any, cancellation: CancellationToken
    ) -> dict[str, Any]:
        if params is None:
            raise RpcError(JsonRpcErrorCode.INVALID_PARAMS, "Missing parameters")
        try:
            call = ToolCallParams.model_validate(params)
        except ValidationError as error:
            raise RpcError(
                JsonRpcErrorCode.INVALID_PARAMS,
                "Invalid parameters",
                error.errors(include_url=False, include_context=False),
            ) from error

        response = await self.execute_tool(call.name, call.arguments, cancellation)
        return response.to_wire()

    async def _handle_ping(
        self, params: Any, cancellation: CancellationToken
    ) -> dict[str, Any]:
        return {}

    def _record(self, name: str, started: float, error_message: str | None) -> None:
        duration = time.perf_counter() - started
        logger.debug("Tool '%s' finished in %.3fs", name, duration)
        self._emit(
            ToolExecuted(
                tool_name=name,
                success=error_message is None,
                duration=duration,
                error_message=error_message,
            )
        )

    def _emit(self, event: ServerEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", type(event).__name__)

    def _on_registry_change(self, action: str, name: str) -> None:
        logger.info("Tool '%s' %s", name, action)
