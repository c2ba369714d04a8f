"""Tests for the dispatch engine."""

from __future__ import annotations

import io
import logging

import pytest

from conftest import (
    SessionRunner,
    make_delay_tool,
    make_echo_tool,
    make_failing_tool,
    make_path_tool,
)
from linemcp.cancellation import CancellationToken
from linemcp.config import ServerOptions
from linemcp.errors import TransportError
from linemcp.events import ServerStarted, ServerStopped, ToolExecuted
from linemcp.protocol import PROTOCOL_VERSION, ToolResponse
from linemcp.registry import ToolRegistry
from linemcp.schema import SchemaNode
from linemcp.server import MCPServer, ServerState
from linemcp.tools import NoArgumentToolDefinition, Tool, ToolDefinition
from linemcp.transport import LineTransport


def _call(request_id: object, name: str, arguments: object = None) -> dict:
    params: dict = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": params}


class _BrokenSchemaTool(Tool):
    name = "broken_schema"
    description = "Schema generation always fails."

    def input_schema(self) -> SchemaNode:
        raise RuntimeError("schema exploded")

    async def execute(self, arguments=None, cancellation=None) -> ToolResponse:
        return ToolResponse.success("unreachable")


class _FailingReader:
    def readline(self) -> bytes:
        raise OSError("pipe closed")


class TestRegistration:
    """Registration helpers kept on the server."""

    def test_register_and_list_tools(self) -> None:
        """Registers a tool and ensures it appears in the catalog."""
        # Arrange
        server = MCPServer()
        echo = make_echo_tool()

        # Act
        server.register_tool(echo)

        # Assert
        assert server.available_tools() == ["echo"]
        catalog = server.to_catalog()
        assert catalog["echo"]["description"] == echo.description
        assert catalog["echo"]["inputSchema"]["required"] == ["text"]

    def test_prevents_duplicate_tool_names(self) -> None:
        """Duplicate registrations raise and leave the registry untouched."""
        # Arrange
        server = MCPServer()
        echo = make_echo_tool()
        server.register_tool(echo)

        # Act / Assert
        with pytest.raises(ValueError, match="already registered"):
            server.register_tool(make_echo_tool())
        assert server.registry.get("echo") is echo
        assert len(server.registry) == 1

    def test_unregister_tool(self) -> None:
        """Unregistering reports whether the tool was present."""
        server = MCPServer()
        server.register_tools(make_echo_tool(), make_path_tool())

        assert server.unregister_tool("echo") is True
        assert server.unregister_tool("echo") is False
        assert server.available_tools() == ["needs_path"]


@pytest.mark.anyio()
class TestMethodTable:
    """Behaviour of the fixed JSON-RPC methods."""

    async def test_initialize_without_tools_omits_tools_capability(
        self, run_session: SessionRunner
    ) -> None:
        """Capabilities only advertise tools once one is registered."""
        # Arrange
        server = MCPServer(ServerOptions(name="demo", version="9.9.9"))

        # Act
        replies = await run_session(
            server, {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}
        )

        # Assert
        result = replies[0]["result"]
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert result["serverInfo"] == {"name": "demo", "version": "9.9.9"}
        assert "tools" not in result["capabilities"]

    async def test_initialize_reflects_registry_changes(
        self, run_session: SessionRunner
    ) -> None:
        """Capabilities are recomputed after the registry changes."""
        # Arrange
        server = MCPServer()
        assert server.capabilities.tools is None

        # Act
        server.register_tool(make_echo_tool())
        replies = await run_session(
            server, {"jsonrpc": "2.0", "id": 1, "method": "initialize"}
        )

        # Assert
        assert replies[0]["result"]["capabilities"]["tools"] == {}

    async def test_initialize_honours_capability_flags(
        self, run_session: SessionRunner
    ) -> None:
        """Resources and prompts follow the options; disabled tools stay hidden."""
        server = MCPServer(
            ServerOptions(enable_tools=False, enable_resources=True, enable_prompts=True)
        )
        server.register_tool(make_echo_tool())

        replies = await run_session(
            server, {"jsonrpc": "2.0", "id": "init", "method": "initialize"}
        )

        assert replies[0]["result"]["capabilities"] == {"resources": {}, "prompts": {}}

    async def test_tools_list_returns_descriptors(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """tools/list exposes name, description and generated schema."""
        replies = await run_session(
            server, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"}
        )

        tools = replies[0]["result"]["tools"]
        assert tools == [
            {
                "name": "echo",
                "description": "Echo the provided text.",
                "inputSchema": {
                    "type": "object",
                    "description": "Parameters for the echo tool.",
                    "properties": {
                        "text": {"type": "string", "description": "Text to echo back"}
                    },
                    "required": ["text"],
                },
            }
        ]

    async def test_tools_call_returns_tool_response(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """A valid call yields exactly one response carrying only a result."""
        replies = await run_session(server, _call(7, "echo", {"text": "hi"}))

        assert len(replies) == 1
        assert replies[0]["id"] == 7
        assert "error" not in replies[0]
        assert replies[0]["result"] == {"content": [{"type": "text", "text": "hi"}]}

    async def test_ping_returns_empty_result(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        replies = await run_session(server, {"jsonrpc": "2.0", "id": 3, "method": "ping"})

        assert replies == [{"jsonrpc": "2.0", "id": 3, "result": {}}]

    async def test_unknown_method_is_not_fatal(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """Unknown methods get -32601 and the loop keeps serving."""
        replies = await run_session(
            server,
            {"jsonrpc": "2.0", "id": 1, "method": "resources/list"},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        )

        assert replies[0]["error"]["code"] == -32601
        assert replies[1] == {"jsonrpc": "2.0", "id": 2, "result": {}}


@pytest.mark.anyio()
class TestErrorMapping:
    """Translation of failures into JSON-RPC errors."""

    async def test_missing_tool_is_invalid_request(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """An unknown tool name maps to -32600, not -32601."""
        replies = await run_session(server, _call(1, "missing_tool", {}))

        error = replies[0]["error"]
        assert error["code"] == -32600
        assert "missing_tool" in error["message"]
        assert "result" not in replies[0]

    async def test_missing_required_argument_is_rejected(
        self, run_session: SessionRunner
    ) -> None:
        """Empty arguments never silently reach a handler needing a path."""
        # Arrange
        server = MCPServer()
        server.register_tool(make_path_tool())

        # Act
        replies = await run_session(server, _call(4, "needs_path", {}))

        # Assert
        error = replies[0]["error"]
        assert error["code"] == -32600
        assert "Invalid arguments for tool 'needs_path'" in error["message"]
        assert error["data"][0]["loc"] == ["path"]

    async def test_missing_call_params_are_invalid_params(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        replies = await run_session(
            server,
            {"jsonrpc": "2.0", "id": 1, "method": "tools/call"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"x": 1}},
        )

        assert replies[0]["error"]["code"] == -32602
        assert replies[0]["error"]["message"] == "Missing parameters"
        assert replies[1]["error"]["code"] == -32602

    async def test_tool_exception_is_wrapped(self, run_session: SessionRunner) -> None:
        """Unexpected tool exceptions keep the inner message as data."""
        server = MCPServer()
        server.register_tool(make_failing_tool())

        replies = await run_session(server, _call(1, "explode", {"text": "x"}))

        error = replies[0]["error"]
        assert error["code"] == -32600
        assert error["message"] == "Tool 'explode' execution failed"
        assert error["data"] == "boom: x"

    async def test_internal_error_does_not_stop_the_loop(
        self, run_session: SessionRunner
    ) -> None:
        """Dispatch failures become -32603 and later requests are still served."""
        server = MCPServer()
        server.register_tool(_BrokenSchemaTool())

        replies = await run_session(
            server,
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        )

        assert replies[0]["error"] == {
            "code": -32603,
            "message": "Internal error",
            "data": "schema exploded",
        }
        assert replies[1]["result"] == {}

    async def test_malformed_lines_get_error_responses(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """Parse errors answer with a null id; blank lines are skipped."""
        replies = await run_session(
            server,
            "{not json",
            "",
            '{"jsonrpc": "2.0", "id": 5, "method": ""}',
            {"jsonrpc": "2.0", "id": 6, "method": "ping"},
        )

        assert replies[0]["id"] is None
        assert replies[0]["error"]["code"] == -32700
        assert replies[1]["id"] == 5
        assert replies[1]["error"]["code"] == -32600
        assert replies[2] == {"jsonrpc": "2.0", "id": 6, "result": {}}

    @pytest.mark.parametrize(
        "line",
        [
            '{"jsonrpc": "2.0", "id": 1, "method": "ping", "params": '
            + "1" * 5000
            + "}",
            "[" * 100_000 + "]" * 100_000,
        ],
        ids=["oversized-integer", "deep-nesting"],
    )
    async def test_undecodable_values_are_parse_errors(
        self, server: MCPServer, run_session: SessionRunner, line: str
    ) -> None:
        """Lines json cannot turn into values are answered and the loop goes on."""
        replies = await run_session(
            server, line, {"jsonrpc": "2.0", "id": 2, "method": "ping"}
        )

        assert len(replies) == 2
        assert replies[0]["id"] is None
        assert replies[0]["error"]["code"] == -32700
        assert replies[1] == {"jsonrpc": "2.0", "id": 2, "result": {}}
        assert server.state is ServerState.CLOSED

    async def test_wrong_version_is_rejected(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        replies = await run_session(
            server,
            {"jsonrpc": "1.0", "id": 7, "method": "ping"},
            {"jsonrpc": "2.0", "id": 8, "method": "ping"},
        )

        assert replies[0]["id"] == 7
        assert replies[0]["error"]["code"] == -32600
        assert replies[1]["result"] == {}

    async def test_malformed_responses_get_no_reply(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        replies = await run_session(
            server,
            {"jsonrpc": "2.0", "id": 3},
            {"jsonrpc": "2.0", "id": 4, "result": {}, "error": {"code": 1}},
            {"jsonrpc": "2.0", "id": 5, "method": "ping"},
        )

        assert replies == [{"jsonrpc": "2.0", "id": 5, "result": {}}]


@pytest.mark.anyio()
class TestLoopBehaviour:
    """Ordering, notifications, cancellation and lifecycle."""

    async def test_notifications_receive_no_reply(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        replies = await run_session(
            server,
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": None, "method": "ping"},
            {"jsonrpc": "2.0", "method": "tools/call", "params": {"name": "missing"}},
            {"jsonrpc": "2.0", "id": 9, "method": "ping"},
        )

        assert [reply["id"] for reply in replies] == [9]

    async def test_responses_follow_request_order(
        self, run_session: SessionRunner
    ) -> None:
        """A slow call sent first is answered before a fast call sent second."""
        # Arrange
        server = MCPServer()
        server.register_tools(make_delay_tool("slow", 0.2), make_delay_tool("fast", 0))

        # Act
        replies = await run_session(
            server,
            _call("a", "slow", {"label": "first"}),
            _call("b", "fast", {"label": "second"}),
        )

        # Assert
        assert [reply["id"] for reply in replies] == ["a", "b"]
        assert replies[0]["result"]["content"][0]["text"] == "slow:first"
        assert replies[1]["result"]["content"][0]["text"] == "fast:second"

    async def test_inbound_responses_are_ignored(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        replies = await run_session(
            server,
            {"jsonrpc": "2.0", "id": 1, "result": {"method": "not a request"}},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        )

        assert [reply["id"] for reply in replies] == [2]

    async def test_events_are_emitted(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """Listeners see start, tool execution and stop; failing listeners are harmless."""
        # Arrange
        events: list[object] = []

        def failing_listener(event: object) -> None:
            raise RuntimeError("listener bug")

        server.subscribe(failing_listener)
        server.subscribe(events.append)

        # Act
        replies = await run_session(
            server, _call(1, "echo", {"text": "hi"}), _call(2, "echo", {})
        )

        # Assert
        assert len(replies) == 2
        assert isinstance(events[0], ServerStarted)
        assert isinstance(events[-1], ServerStopped)
        executed = [event for event in events if isinstance(event, ToolExecuted)]
        assert [event.success for event in executed] == [True, False]
        assert executed[0].tool_name == "echo"
        assert executed[0].duration >= 0
        assert "Invalid arguments" in (executed[1].error_message or "")

    async def test_unsubscribe_stops_delivery(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        events: list[object] = []
        unsubscribe = server.subscribe(events.append)
        unsubscribe()

        await run_session(server, {"jsonrpc": "2.0", "id": 1, "method": "ping"})

        assert events == []

    async def test_server_runs_only_once(
        self, server: MCPServer, run_session: SessionRunner
    ) -> None:
        """A server moves to CLOSED and refuses a second run."""
        assert server.state is ServerState.IDLE

        await run_session(server)

        assert server.state is ServerState.CLOSED
        with pytest.raises(RuntimeError):
            await run_session(server)

    async def test_cancelled_token_stops_before_reading(self, server: MCPServer) -> None:
        token = CancellationToken()
        token.cancel()
        writer = io.BytesIO()
        reader = io.BytesIO(b'{"jsonrpc":"2.0","id":1,"method":"ping"}\n')
        transport = LineTransport(reader, writer)

        await server.run(transport, token)

        assert writer.getvalue() == b""
        assert transport.is_connected is False
        assert server.state is ServerState.CLOSED

    async def test_tool_cancellation_is_reported_and_ends_the_loop(
        self, run_session: SessionRunner
    ) -> None:
        """A tool honouring the shared token yields an error, never a success."""

        def handler(cancellation: CancellationToken) -> ToolResponse:
            cancellation.cancel()
            cancellation.raise_if_cancelled()
            return ToolResponse.success("unreachable")

        server = MCPServer()
        server.register_tool(
            NoArgumentToolDefinition(name="stop", description=None, handler=handler)
        )

        replies = await run_session(
            server, _call(1, "stop"), {"jsonrpc": "2.0", "id": 2, "method": "ping"}
        )

        assert len(replies) == 1
        assert replies[0]["error"]["code"] == -32603
        assert replies[0]["error"]["message"] == "Request was cancelled"

    async def test_stream_failure_propagates(self, server: MCPServer) -> None:
        """Broken streams end the run with a connection-closed transport error."""
        events: list[object] = []
        server.subscribe(events.append)
        transport = LineTransport(_FailingReader(), io.BytesIO())  # type: ignore[arg-type]

        with pytest.raises(TransportError) as info:
            await server.run(transport)

        assert info.value.connection_closed is True
        assert server.state is ServerState.CLOSED
        assert isinstance(events[-1], ServerStopped)


@pytest.mark.anyio()
async def test_execute_tool_direct_call() -> None:
    """execute_tool can be used without a transport."""
    server = MCPServer()
    tool: ToolDefinition = make_echo_tool()
    server.register_tool(tool)

    response = await server.execute_tool("echo", {"text": "direct"})

    assert response.text == "direct"


@pytest.mark.anyio()
async def test_finished_server_detaches_from_shared_registry(
    run_session: SessionRunner, caplog: pytest.LogCaptureFixture
) -> None:
    """Only live servers log membership changes of a shared registry."""
    # Arrange
    registry = ToolRegistry()
    await run_session(MCPServer(registry=registry))
    MCPServer(registry=registry)

    # Act
    with caplog.at_level(logging.INFO, logger="linemcp.server"):
        registry.register(make_echo_tool())

    # Assert
    messages = [record.getMessage() for record in caplog.records]
    assert messages.count("Tool 'echo' registered") == 1
