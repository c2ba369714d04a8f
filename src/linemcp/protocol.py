"""JSON-RPC envelopes and MCP payload models.

Every model exposes the Python-side attribute names in snake_case and serializes to
the camelCase wire names through pydantic aliases. Use ``to_wire`` to obtain the
JSON-ready mapping that is handed to a transport.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from linemcp.errors import JsonRpcErrorCode

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready representation with unset optionals dropped."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class JsonRpcRequest(_WireModel):
    """Inbound request or notification."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Any = None
    method: str = Field(min_length=1)
    params: Any = None

    @property
    def is_notification(self) -> bool:
        """Whether the request expects no response."""
        return self.id is None

    def to_wire(self) -> dict[str, Any]:
        message: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        message["method"] = self.method
        if self.params is not None:
            message["params"] = self.params
        return message


class JsonRpcError(_WireModel):
    """Error member of a failed response."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(_WireModel):
    """Outbound (or echoed) response carrying exactly one of result or error."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Any = None
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _check_outcome(self) -> JsonRpcResponse:
        has_result = "result" in self.model_fields_set
        has_error = self.error is not None
        if has_result == has_error:
            raise ValueError("A response must carry exactly one of result or error")
        return self

    @classmethod
    def success(cls, request_id: Any, result: Any) -> JsonRpcResponse:
        """Build a successful response."""
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: Any,
        code: JsonRpcErrorCode | int,
        message: str,
        data: Any = None,
    ) -> JsonRpcResponse:
        """Build an error response."""
        return cls(
            id=request_id,
            error=JsonRpcError(code=int(code), message=message, data=data),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_wire(self) -> dict[str, Any]:
        message: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            message["error"] = self.error.to_wire()
        else:
            message["result"] = self.result
        return message


JsonRpcMessage = Union[JsonRpcRequest, JsonRpcResponse]


def parse_message(data: Any) -> JsonRpcMessage:
    """Classify and validate a decoded JSON value.

    Objects with a ``method`` member are requests; everything else must be a
    response.

    Raises:
        pydantic.ValidationError: If the value does not match the chosen envelope.
    """
    if isinstance(data, dict) and "method" in data:
        return JsonRpcRequest.model_validate(data)
    return JsonRpcResponse.model_validate(data)


class ContentPart(_WireModel):
    """One chunk of a tool response."""

    type: str = "text"
    text: str = ""


class ToolResponse(_WireModel):
    """Ordered content parts plus an optional error flag."""

    content: list[ContentPart] = Field(default_factory=list)
    is_error: bool | None = Field(default=None, alias="isError")

    @classmethod
    def success(cls, text: str) -> ToolResponse:
        """Wrap ``text`` in a single-part response."""
        return cls(content=[ContentPart(text=text)])

    @classmethod
    def error(cls, text: str) -> ToolResponse:
        """Wrap ``text`` in a single-part response flagged as an error."""
        return cls(content=[ContentPart(text=text)], is_error=True)

    @property
    def text(self) -> str:
        """Concatenated text of every part, newline separated."""
        return "\n".join(part.text for part in self.content)


class ToolDescriptor(_WireModel):
    """Discovery summary of a tool as returned by ``tools/list``."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(alias="inputSchema")


class ToolCallParams(BaseModel):
    """Parameters of a ``tools/call`` request."""

    name: str = Field(min_length=1)
    arguments: Any = None


class ServerCapabilities(_WireModel):
    tools: dict[str, Any] | None = None
    resources: dict[str, Any] | None = None
    prompts: dict[str, Any] | None = None


class ServerInfo(_WireModel):
    name: str
    version: str


class InitializeResult(_WireModel):
    """Result of the ``initialize`` handshake."""

    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: ServerCapabilities
    server_info: ServerInfo = Field(alias="serverInfo")

