"""Shared test fixtures."""

from __future__ import annotations

import io
import json
from collections.abc import Awaitable, Callable
from typing import Any

import anyio
import pytest
from pydantic import Field

from linemcp.cancellation import CancellationToken
from linemcp.protocol import ToolResponse
from linemcp.server import MCPServer
from linemcp.tools import ToolDefinition, ToolParameters
from linemcp.transport import LineTransport


class EchoParams(ToolParameters):
    """Parameters for the echo tool."""

    text: str = Field(description="Text to echo back")


class DelayParams(ToolParameters):
    """Parameters for the delay tools."""

    label: str


class PathParams(ToolParameters):
    """Parameters requiring a path."""

    path: str


def make_echo_tool() -> ToolDefinition[EchoParams]:
    def handler(
        params: EchoParams, cancellation: CancellationToken
    ) -> ToolResponse:
        return ToolResponse.success(params.text)

    return ToolDefinition(
        name="echo",
        description="Echo the provided text.",
        parameters_model=EchoParams,
        handler=handler,
    )


def make_delay_tool(name: str, seconds: float) -> ToolDefinition[DelayParams]:
    async def handler(
        params: DelayParams, cancellation: CancellationToken
    ) -> ToolResponse:
        await anyio.sleep(seconds)
        return ToolResponse.success(f"{name}:{params.label}")

    return ToolDefinition(
        name=name,
        description=f"Sleep {seconds}s before answering.",
        parameters_model=DelayParams,
        handler=handler,
    )


def make_path_tool() -> ToolDefinition[PathParams]:
    def handler(
        params: PathParams, cancellation: CancellationToken
    ) -> ToolResponse:
        return ToolResponse.success(params.path)

    return ToolDefinition(
        name="needs_path",
        description="Return the given path.",
        parameters_model=PathParams,
        handler=handler,
    )


def make_failing_tool() -> ToolDefinition[EchoParams]:
    def handler(
        params: EchoParams, cancellation: CancellationToken
    ) -> ToolResponse:
        raise RuntimeError(f"boom: {params.text}")

    return ToolDefinition(
        name="explode",
        description="Always raises.",
        parameters_model=EchoParams,
        handler=handler,
    )


def encode_lines(*messages: dict[str, Any] | str) -> bytes:
    """Join messages into newline-delimited wire bytes."""
    lines = [
        message if isinstance(message, str) else json.dumps(message)
        for message in messages
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


def decode_lines(data: bytes) -> list[dict[str, Any]]:
    """Split written wire bytes into decoded JSON objects."""
    return [json.loads(line) for line in data.decode("utf-8").splitlines()]


SessionRunner = Callable[..., Awaitable[list[dict[str, Any]]]]


@pytest.fixture()
def run_session() -> SessionRunner:
    """Feed messages to a server over in-memory streams and return its replies."""

    async def runner(
        server: MCPServer, *messages: dict[str, Any] | str
    ) -> list[dict[str, Any]]:
        reader = io.BytesIO(encode_lines(*messages))
        writer = io.BytesIO()
        await server.run(LineTransport(reader, writer))
        return decode_lines(writer.getvalue())

    return runner


@pytest.fixture()
def server() -> MCPServer:
    """Server with the echo tool registered."""
    instance = MCPServer()
    instance.register_tool(make_echo_tool())
    return instance
