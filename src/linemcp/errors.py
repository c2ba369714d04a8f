"""Error types shared by the dispatch engine, tools and transports."""

from __future__ import annotations

from enum import IntEnum
from typing import NoReturn, TypedDict


class JsonRpcErrorCode(IntEnum):
    """Fixed JSON-RPC 2.0 error codes used on the wire."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class ToolErrorPayload(TypedDict):
    """Structured JSON payload for tool errors."""

    error: dict[str, object | None]


class ToolError(Exception):
    """Failure raised by a tool while binding arguments or executing.

    The dispatch engine is the only consumer of this type; it translates every
    ``ToolError`` into an "invalid request" JSON-RPC error, keeping ``message`` and
    exposing ``details`` as the error ``data``.
    """

    def __init__(
        self,
        error_type: str,
        message: str,
        details: object | None = None,
        *,
        retryable: bool = False,
    ) -> None:
        """Create a structured tool error."""
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details
        self.retryable = retryable

    def to_dict(self) -> ToolErrorPayload:
        """Return the structured error payload."""
        return {
            "error": {
                "type": self.error_type,
                "message": self.message,
                "details": self.details,
                "retryable": self.retryable,
            }
        }


class ToolCancelledError(ToolError):
    """Raised when a tool observes a triggered cancellation token."""

    def __init__(self, message: str = "Operation was cancelled") -> None:
        """Create a retryable cancellation error."""
        super().__init__("Cancelled", message, retryable=True)


class TransportError(Exception):
    """Failure while reading from or writing to a transport.

    Attributes:
        code: JSON-RPC code describing the failure when it can be answered.
        connection_closed: Whether the underlying stream faulted. Such errors are
            fatal to the connection and propagate out of the server loop.
        request_id: Id of the offending request when it could be recovered.
    """

    def __init__(
        self,
        message: str,
        *,
        code: JsonRpcErrorCode = JsonRpcErrorCode.INTERNAL_ERROR,
        connection_closed: bool = False,
        request_id: object | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.connection_closed = connection_closed
        self.request_id = request_id


def raise_tool_error(
    error_type: str, message: str, details: object | None = None
) -> NoReturn:
    """Raise a non-retryable :class:`ToolError` with a structured payload."""
    raise ToolError(error_type=error_type, message=message, details=details)


class RpcError(Exception):
    """Failure that maps directly onto a JSON-RPC error response."""

    def __init__(
        self, code: JsonRpcErrorCode, message: str, data: object | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data
