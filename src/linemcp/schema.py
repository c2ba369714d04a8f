"""JSON Schema generation from pydantic argument models.

Tool authors declare their arguments as :class:`pydantic.BaseModel` subclasses and
never write schemas by hand. :func:`generate_schema` walks the declared fields and
produces a :class:`SchemaNode` tree using a small, deterministic mapping:

* ``str`` (and :class:`pathlib.PurePath`) becomes ``string``, ``bool`` becomes
  ``boolean``, ``int`` becomes ``integer`` and ``float``/``Decimal`` become ``number``.
* Sequences become ``array`` with ``items`` describing the element type.
* :class:`enum.Enum` subclasses become ``string`` with the member names as ``enum``.
* ``Literal`` types become their primitive type with the literal values as ``enum``.
* Nested models become ``object`` with ``properties`` and ``required``.
* ``Optional`` and ``Annotated`` wrappers are unwrapped.

Field constraints declared through :func:`pydantic.Field` (``min_length``,
``pattern``, ``ge`` and so on) are copied onto the node of the matching type, and any
mapping passed as ``json_schema_extra`` is merged verbatim.
"""

from __future__ import annotations

import collections.abc
import inspect
import types
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field
from pydantic.fields import FieldInfo

_SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Iterable,
    collections.abc.Collection,
)

_LENGTH_KEYS = {
    "string": ("minLength", "maxLength"),
    "array": ("minItems", "maxItems"),
}

_BOUND_KEYS = {
    "ge": "minimum",
    "le": "maximum",
    "gt": "exclusiveMinimum",
    "lt": "exclusiveMaximum",
    "multiple_of": "multipleOf",
}


class SchemaGenerationError(TypeError):
    """Raised when a type cannot be described by the supported schema subset."""


class SchemaNode(BaseModel):
    """One node of a generated JSON Schema."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    description: str | None = None
    properties: dict[str, SchemaNode] | None = None
    required: list[str] | None = None
    items: SchemaNode | None = None
    enum: list[Any] | None = None
    format: str | None = None
    pattern: str | None = None
    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: int | float | None = Field(
        default=None, alias="exclusiveMinimum"
    )
    exclusive_maximum: int | float | None = Field(
        default=None, alias="exclusiveMaximum"
    )
    multiple_of: int | float | None = Field(default=None, alias="multipleOf")
    min_items: int | None = Field(default=None, alias="minItems")
    max_items: int | None = Field(default=None, alias="maxItems")
    unique_items: bool | None = Field(default=None, alias="uniqueItems")

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, omitting unset keywords."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def empty_object(cls) -> SchemaNode:
        """Schema accepted by tools that take no arguments."""
        return cls(type="object", properties={})


def _unwrap(annotation: Any) -> tuple[Any, bool, list[Any]]:
    """Strip ``Annotated`` and ``Optional`` layers.

    Returns:
        The bare type, whether ``None`` was allowed, and the collected metadata.

    Raises:
        SchemaGenerationError: For unions of more than one non-null type.
    """
    nullable = False
    metadata: list[Any] = []
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            base, *extra = get_args(annotation)
            metadata.extend(extra)
            annotation = base
            continue
        if origin is Union or origin is types.UnionType:
            arms = get_args(annotation)
            non_null = [arm for arm in arms if arm is not type(None)]
            nullable = nullable or len(non_null) != len(arms)
            if len(non_null) != 1:
                raise SchemaGenerationError(
                    f"Unsupported union type {annotation!r}; only Optional[T] is allowed"
                )
            annotation = non_null[0]
            continue
        if annotation is type(None):
            raise SchemaGenerationError("A field cannot be typed as None alone")
        return annotation, nullable, metadata


def _is_value_type(annotation: Any) -> bool:
    if annotation in (bool, int, float, Decimal):
        return True
    return inspect.isclass(annotation) and issubclass(annotation, Enum)


def _literal_type(values: tuple[Any, ...]) -> str:
    if values and all(isinstance(value, bool) for value in values):
        return "boolean"
    if values and all(
        isinstance(value, int) and not isinstance(value, bool) for value in values
    ):
        return "integer"
    if values and all(isinstance(value, (int, float)) for value in values):
        return "number"
    return "string"


class _SchemaBuilder:
    def __init__(self) -> None:
        self._active: list[type[BaseModel]] = []

    def build(self, annotation: Any, metadata: list[Any]) -> SchemaNode:
        annotation, _, inner_metadata = _unwrap(annotation)
        node = self._shape(annotation)
        return _apply_constraints(node, [*metadata, *inner_metadata])

    def _shape(self, annotation: Any) -> SchemaNode:
        origin = get_origin(annotation)
        if annotation is bool:
            return SchemaNode(type="boolean")
        if inspect.isclass(annotation) and issubclass(annotation, Enum):
            return SchemaNode(type="string", enum=[member.name for member in annotation])
        if annotation is int or (
            inspect.isclass(annotation) and issubclass(annotation, int)
        ):
            return SchemaNode(type="integer")
        if annotation in (float, Decimal):
            return SchemaNode(type="number")
        if annotation is str or (
            inspect.isclass(annotation) and issubclass(annotation, (str, PurePath))
        ):
            return SchemaNode(type="string")
        if origin is Literal:
            values = get_args(annotation)
            return SchemaNode(type=_literal_type(values), enum=list(values))
        if annotation in _SEQUENCE_ORIGINS or origin in _SEQUENCE_ORIGINS:
            return self._array(annotation)
        if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
            return self._object(annotation)
        # dict, Mapping, Any and anything unknown are free-form objects.
        return SchemaNode(type="object")

    def _array(self, annotation: Any) -> SchemaNode:
        args = [arg for arg in get_args(annotation) if arg is not Ellipsis]
        if not args:
            return SchemaNode(type="array")
        if len(args) > 1 and any(arg != args[0] for arg in args):
            raise SchemaGenerationError(
                f"Heterogeneous tuple {annotation!r} cannot be described as an array"
            )
        return SchemaNode(type="array", items=self.build(args[0], []))

    def _object(self, model: type[BaseModel]) -> SchemaNode:
        if model in self._active:
            chain = " -> ".join(item.__name__ for item in [*self._active, model])
            raise SchemaGenerationError(f"Self-referential model detected: {chain}")
        self._active.append(model)
        try:
            properties: dict[str, SchemaNode] = {}
            required: list[str] = []
            for field_name, field in model.model_fields.items():
                key = field.alias or field_name
                properties[key] = self._field(field)
                if _field_is_required(field):
                    required.append(key)
        finally:
            self._active.pop()

        doc = model.__dict__.get("__doc__")
        return SchemaNode(
            type="object",
            description=inspect.cleandoc(doc) if doc else None,
            properties=properties,
            required=required or None,
        )

    def _field(self, field: FieldInfo) -> SchemaNode:
        node = self.build(field.annotation, list(field.metadata))
        if field.description:
            node.description = field.description
        if isinstance(field.json_schema_extra, dict):
            node = _merge_extra(node, field.json_schema_extra)
        return node


def _field_is_required(field: FieldInfo) -> bool:
    if field.is_required():
        return True
    annotation, nullable, _ = _unwrap(field.annotation)
    return not nullable and _is_value_type(annotation)


def _merge_extra(node: SchemaNode, extra: dict[str, Any]) -> SchemaNode:
    return SchemaNode.model_validate({**node.to_dict(), **extra})


def _apply_constraints(node: SchemaNode, metadata: list[Any]) -> SchemaNode:
    for item in metadata:
        if isinstance(item, FieldInfo):
            node = _apply_constraints(node, list(item.metadata))
            if item.description:
                node.description = item.description
            if isinstance(item.json_schema_extra, dict):
                node = _merge_extra(node, item.json_schema_extra)
            continue

        length_keys = _LENGTH_KEYS.get(node.type)
        if length_keys is not None:
            min_length = getattr(item, "min_length", None)
            max_length = getattr(item, "max_length", None)
            updates = {}
            if min_length is not None:
                updates[length_keys[0]] = min_length
            if max_length is not None:
                updates[length_keys[1]] = max_length
            if updates:
                node = SchemaNode.model_validate({**node.to_dict(), **updates})

        if node.type == "string":
            pattern = getattr(item, "pattern", None)
            if pattern is not None:
                node.pattern = getattr(pattern, "pattern", pattern)

        if node.type in ("integer", "number"):
            updates = {}
            for attribute, keyword in _BOUND_KEYS.items():
                value = getattr(item, attribute, None)
                if value is not None:
                    updates[keyword] = value
            if updates:
                node = SchemaNode.model_validate({**node.to_dict(), **updates})
    return node


def generate_schema(shape: Any) -> SchemaNode:
    """Derive a schema node from an argument type.

    Args:
        shape: A pydantic model class or any supported type annotation.

    Returns:
        The generated schema tree.

    Raises:
        SchemaGenerationError: If the type is self-referential or uses an unsupported
            union.
    """
    return _SchemaBuilder().build(shape, [])
