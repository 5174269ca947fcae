"""Tagged configuration values and the response body decoder."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Union

from pydantic import JsonValue, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from maji_config.errors import DecodeError

__all__ = [
    "ValueKind",
    "BoolValue",
    "StringValue",
    "NumberValue",
    "NullValue",
    "ListValue",
    "ObjectValue",
    "Value",
    "to_value",
    "decode_snapshot",
]


class ValueKind(str, Enum):
    """The JSON type a configuration value was decoded from."""

    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER = "number"
    NULL = "null"
    LIST = "list"
    OBJECT = "object"


@dataclass(frozen=True)
class BoolValue:
    value: bool
    kind: ClassVar[ValueKind] = ValueKind.BOOLEAN

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True)
class StringValue:
    value: str
    kind: ClassVar[ValueKind] = ValueKind.STRING

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    value: int | float
    kind: ClassVar[ValueKind] = ValueKind.NUMBER

    def to_python(self) -> int | float:
        return self.value


@dataclass(frozen=True)
class NullValue:
    value: None = None
    kind: ClassVar[ValueKind] = ValueKind.NULL

    def to_python(self) -> None:
        return None


@dataclass(frozen=True)
class ListValue:
    value: tuple[Value, ...]
    kind: ClassVar[ValueKind] = ValueKind.LIST

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.value]


@dataclass(frozen=True)
class ObjectValue:
    """A nested JSON object. ``value`` is a read-only mapping."""

    value: Mapping[str, Value]
    kind: ClassVar[ValueKind] = ValueKind.OBJECT

    def to_python(self) -> dict[str, Any]:
        return {k: v.to_python() for k, v in self.value.items()}


Value = Union[BoolValue, StringValue, NumberValue, NullValue, ListValue, ObjectValue]


def to_value(raw: Any) -> Value:
    """Tag a decoded JSON value with its kind, recursively.

    ``bool`` is checked before numbers since it subclasses ``int``.

    Raises:
        ValueError: For a float that is infinite or NaN.
    """
    if raw is None:
        return NullValue()
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, str):
        return StringValue(raw)
    if isinstance(raw, float) and not math.isfinite(raw):
        raise ValueError(f"Number out of range: {raw}")
    if isinstance(raw, (int, float)):
        return NumberValue(raw)
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(to_value(item) for item in raw))
    if isinstance(raw, dict):
        items = {str(k): to_value(v) for k, v in raw.items()}
        return ObjectValue(MappingProxyType(items))
    raise TypeError(f"Cannot convert {type(raw).__name__} to a config value")


_BODY_ADAPTER: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])


def decode_snapshot(body: bytes) -> dict[str, Value]:
    """Decode a ``/getConfig`` response body into tagged values.

    Raises:
        DecodeError: If the body is empty or not valid JSON, if its
            top-level value is not an object, or if it holds a number
            that does not fit a finite float.
    """
    if not body or not body.strip():
        raise DecodeError("Empty response body")

    try:
        raw = _BODY_ADAPTER.validate_json(body)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.error_count() else {"msg": str(e)}
        raise DecodeError(
            f"Response body is not a JSON object: {first['msg']}",
            details={"errors": e.errors(include_url=False)},
            cause=e,
        ) from e

    try:
        return {key: to_value(item) for key, item in raw.items()}
    except ValueError as e:
        raise DecodeError(str(e), cause=e) from e
