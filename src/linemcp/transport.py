"""Transport abstraction and the newline-delimited JSON implementation."""

from __future__ import annotations

import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, BinaryIO

import anyio
import anyio.to_thread
from pydantic import ValidationError

from linemcp.cancellation import CancellationToken
from linemcp.errors import JsonRpcErrorCode, TransportError
from linemcp.protocol import JsonRpcMessage, parse_message

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Bidirectional channel carrying one JSON-RPC message at a time."""

    @abstractmethod
    async def read_message(
        self, cancellation: CancellationToken | None = None
    ) -> JsonRpcMessage | None:
        """Read the next message, or ``None`` once the peer disconnects.

        Raises:
            TransportError: If the input is malformed or the stream faulted.
        """

    @abstractmethod
    async def write_message(
        self, message: JsonRpcMessage, cancellation: CancellationToken | None = None
    ) -> None:
        """Send one message."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the channel can still carry messages."""

    @abstractmethod
    async def close(self) -> None:
        """Release the channel. Safe to call more than once."""


def _request_id(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("id")
    return None


def decode_line(text: str) -> JsonRpcMessage | None:
    """Parse one line of wire text into a message.

    A malformed response is logged and dropped, returning ``None``, since responses
    are never answered.

    Raises:
        TransportError: With ``PARSE_ERROR`` for invalid JSON and
            ``INVALID_REQUEST`` for JSON that is not a valid envelope.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TransportError(
            f"Parse error: {exc.msg}", code=JsonRpcErrorCode.PARSE_ERROR
        ) from exc
    except (ValueError, RecursionError) as exc:
        # Oversized integer literals and excessive nesting.
        raise TransportError(
            f"Parse error: {exc}", code=JsonRpcErrorCode.PARSE_ERROR
        ) from exc
    try:
        return parse_message(data)
    except ValidationError as exc:
        if isinstance(data, dict) and "method" not in data:
            logger.warning("Dropping malformed response for id %r", data.get("id"))
            return None
        raise TransportError(
            f"Invalid request: {exc.error_count()} validation error(s)",
            code=JsonRpcErrorCode.INVALID_REQUEST,
            request_id=_request_id(data),
        ) from exc


def encode_message(message: JsonRpcMessage) -> bytes:
    """Serialize a message to a single UTF-8 line terminated by ``\\n``."""
    text = json.dumps(message.to_wire(), ensure_ascii=False, separators=(",", ":"))
    return (text + "\n").encode("utf-8")


class LineTransport(Transport):
    """Newline-delimited JSON over a pair of binary streams.

    Blocking stream calls are pushed to worker threads so the event loop stays free.
    Writes are serialized by a lock and flushed immediately, so concurrent writers
    never interleave partial lines.
    """

    def __init__(
        self, reader: BinaryIO, writer: BinaryIO, *, close_streams: bool = False
    ) -> None:
        """Wrap ``reader`` and ``writer``.

        Args:
            reader: Binary stream supplying inbound lines.
            writer: Binary stream receiving outbound lines.
            close_streams: Whether :meth:`close` should also close both streams.
        """
        self._reader = reader
        self._writer = writer
        self._close_streams = close_streams
        self._write_lock = anyio.Lock()
        self._connected = True
        self._closed = False

    @classmethod
    def stdio(cls) -> LineTransport:
        """Bind to the process' standard input and output."""
        return cls(sys.stdin.buffer, sys.stdout.buffer)

    @property
    def is_connected(self) -> bool:
        return self._connected and not self._closed

    async def read_message(
        self, cancellation: CancellationToken | None = None
    ) -> JsonRpcMessage | None:
        while True:
            if self._closed or (cancellation is not None and cancellation.cancelled):
                return None
            try:
                line = await anyio.to_thread.run_sync(self._reader.readline)
            except (OSError, ValueError) as exc:
                self._connected = False
                raise TransportError(
                    f"Failed to read from transport: {exc}", connection_closed=True
                ) from exc

            if not line:
                logger.debug("Peer closed the input stream")
                self._connected = False
                return None

            try:
                text = line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise TransportError(
                    "Parse error: input is not valid UTF-8",
                    code=JsonRpcErrorCode.PARSE_ERROR,
                ) from exc

            text = text.strip()
            if not text:
                continue
            logger.debug("Received: %s", text)
            message = decode_line(text)
            if message is None:
                continue
            return message

    async def write_message(
        self, message: JsonRpcMessage, cancellation: CancellationToken | None = None
    ) -> None:
        data = encode_message(message)
        async with self._write_lock:
            if self._closed:
                raise TransportError("Transport is closed", connection_closed=True)
            try:
                await anyio.to_thread.run_sync(self._write_line, data)
            except (OSError, ValueError) as exc:
                self._connected = False
                raise TransportError(
                    f"Failed to write to transport: {exc}", connection_closed=True
                ) from exc

    def _write_line(self, data: bytes) -> None:
        self._writer.write(data)
        self._writer.flush()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connected = False
        async with self._write_lock:
            try:
                self._writer.flush()
                if self._close_streams:
                    self._writer.close()
                    self._reader.close()
            except (OSError, ValueError) as exc:
                logger.debug("Ignoring error while closing transport: %s", exc)
