"""Tool contract and the typed-argument adapters built on top of it."""

from __future__ import annotations

import functools
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

import anyio.to_thread
from pydantic import BaseModel, ConfigDict, ValidationError

from linemcp.cancellation import CancellationToken
from linemcp.errors import ToolError
from linemcp.protocol import ToolDescriptor, ToolResponse
from linemcp.schema import SchemaNode, generate_schema

HandlerResult = Union[ToolResponse, str]


class ToolParameters(BaseModel):
    """Base parameters schema for tools."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


ParamsT = TypeVar("ParamsT", bound=BaseModel)


class Tool(ABC):
    """Contract satisfied by every tool the server can dispatch to.

    Attributes:
        name: Unique, non-empty tool name.
        description: Optional human-readable summary.
    """

    name: str
    description: str | None

    @abstractmethod
    def input_schema(self) -> SchemaNode:
        """Return the schema describing accepted arguments."""

    @abstractmethod
    async def execute(
        self, arguments: Any = None, cancellation: CancellationToken | None = None
    ) -> ToolResponse:
        """Run the tool.

        Args:
            arguments: Raw ``arguments`` member of a ``tools/call`` request, if any.
            cancellation: Token the tool must observe while running.

        Raises:
            ToolError: If arguments are rejected or the tool fails.
        """

    def descriptor(self) -> ToolDescriptor:
        """Return the wire-facing summary used by ``tools/list``."""
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema().to_dict(),
        )


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors(include_url=False):
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def _coerce(result: HandlerResult) -> ToolResponse:
    if isinstance(result, ToolResponse):
        return result
    return ToolResponse.success(str(result))


async def _call(function: Callable[..., Any], *args: Any) -> Any:
    if inspect.iscoroutinefunction(function):
        return await function(*args)
    return await anyio.to_thread.run_sync(functools.partial(function, *args))


@dataclass
class ToolDefinition(Tool, Generic[ParamsT]):
    """Tool built from a parameters model, an optional validator and a handler.

    Raw arguments go through the same pipeline for every tool: absent arguments bind
    to the model's defaults, present ones are validated by pydantic, the optional
    ``validator`` performs cross-field checks, and only then is ``handler`` invoked
    with the typed parameters. Synchronous handlers run in a worker thread.

    Attributes:
        name: Unique name of the tool.
        description: Human-readable description of the tool purpose.
        parameters_model: Pydantic model the arguments are bound to.
        handler: Callable receiving the bound parameters and a cancellation token.
        validator: Optional callable returning an error message for invalid input.
    """

    name: str
    description: str | None
    parameters_model: type[ParamsT]
    handler: Callable[
        [ParamsT, CancellationToken], HandlerResult | Awaitable[HandlerResult]
    ]
    validator: Callable[[ParamsT], str | None] | None = None

    def input_schema(self) -> SchemaNode:
        return generate_schema(self.parameters_model)

    def bind(self, arguments: Any) -> ParamsT:
        """Deserialize and validate raw arguments.

        Raises:
            ToolError: ``InvalidArguments`` when deserialization fails and
                ``ValidationFailed`` when the validator rejects the parameters.
        """
        raw = {} if arguments is None else arguments
        try:
            params = self.parameters_model.model_validate(raw)
        except ValidationError as error:
            raise ToolError(
                "InvalidArguments",
                f"Invalid arguments for tool '{self.name}': {_summarize(error)}",
                error.errors(include_url=False, include_context=False),
            ) from error

        problem = self.validate(params)
        if problem:
            raise ToolError(
                "ValidationFailed", f"Argument validation failed: {problem}"
            )
        return params

    def validate(self, params: ParamsT) -> str | None:
        """Return an error message when ``params`` are unacceptable."""
        if self.validator is None:
            return None
        return self.validator(params)

    async def execute(
        self, arguments: Any = None, cancellation: CancellationToken | None = None
    ) -> ToolResponse:
        params = self.bind(arguments)
        token = cancellation or CancellationToken()
        token.raise_if_cancelled()
        return _coerce(await _call(self.handler, params, token))


@dataclass
class NoArgumentToolDefinition(Tool):
    """Tool that ignores its arguments and advertises an empty object schema."""

    name: str
    description: str | None
    handler: Callable[[CancellationToken], HandlerResult | Awaitable[HandlerResult]]

    def input_schema(self) -> SchemaNode:
        return SchemaNode.empty_object()

    async def execute(
        self, arguments: Any = None, cancellation: CancellationToken | None = None
    ) -> ToolResponse:
        token = cancellation or CancellationToken()
        token.raise_if_cancelled()
        return _coerce(await _call(self.handler, token))
