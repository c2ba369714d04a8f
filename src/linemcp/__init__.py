"""Framework for Model Context Protocol servers over line-delimited JSON-RPC."""

__version__ = "0.1.0"

from linemcp.cancellation import CancellationToken  # noqa: E402
from linemcp.config import ServerOptions  # noqa: E402
from linemcp.errors import (  # noqa: E402
    JsonRpcErrorCode,
    ToolCancelledError,
    ToolError,
    TransportError,
)
from linemcp.protocol import ContentPart, ToolResponse  # noqa: E402
from linemcp.registry import ToolRegistry  # noqa: E402
from linemcp.responses import ToolResponseBuilder  # noqa: E402
from linemcp.schema import SchemaNode, generate_schema  # noqa: E402
from linemcp.server import MCPServer, ServerState  # noqa: E402
from linemcp.tools import (  # noqa: E402
    NoArgumentToolDefinition,
    Tool,
    ToolDefinition,
    ToolParameters,
)
from linemcp.transport import LineTransport, Transport  # noqa: E402

__all__ = [
    "CancellationToken",
    "ContentPart",
    "JsonRpcErrorCode",
    "LineTransport",
    "MCPServer",
    "NoArgumentToolDefinition",
    "SchemaNode",
    "ServerOptions",
    "ServerState",
    "Tool",
    "ToolCancelledError",
    "ToolDefinition",
    "ToolError",
    "ToolParameters",
    "ToolRegistry",
    "ToolResponse",
    "ToolResponseBuilder",
    "Transport",
    "TransportError",
    "__version__",
    "generate_schema",
]
