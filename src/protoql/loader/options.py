"""Encode options messages into plain JSON-ready trees.

Every value is one of five shapes: scalar, list, map, nested message or
enum. The result contains only dicts, lists, str, int, float and bool so it
can be stored in a JSON column and queried with JSON path expressions.

An options message with no field set encodes to None, never to ``{}``.
"""

from __future__ import annotations

import base64
import math
import struct
from typing import TYPE_CHECKING, Any

from google.protobuf.descriptor import FieldDescriptor

if TYPE_CHECKING:
    from google.protobuf.message import Message

    from protoql.loader.resolver import BatchResolver

_INT_TYPES = frozenset(
    {
        FieldDescriptor.TYPE_INT32,
        FieldDescriptor.TYPE_INT64,
        FieldDescriptor.TYPE_UINT32,
        FieldDescriptor.TYPE_UINT64,
        FieldDescriptor.TYPE_SINT32,
        FieldDescriptor.TYPE_SINT64,
        FieldDescriptor.TYPE_FIXED32,
        FieldDescriptor.TYPE_FIXED64,
        FieldDescriptor.TYPE_SFIXED32,
        FieldDescriptor.TYPE_SFIXED64,
    }
)
_MESSAGE_TYPES = frozenset({FieldDescriptor.TYPE_MESSAGE, FieldDescriptor.TYPE_GROUP})


def encode_options(options: Message | None, resolver: BatchResolver | None = None) -> dict[str, Any] | None:
    """Encode the set fields of an options message, or None if none are set."""
    if options is None:
        return None
    if resolver is not None:
        options = resolver.resolve_options(options)
    fields = options.ListFields()
    if not fields:
        return None
    return _encode_fields(fields)


def encode_message(message: Message) -> dict[str, Any]:
    """Encode a nested message; an empty message encodes to ``{}``."""
    return _encode_fields(message.ListFields())


def _encode_fields(fields: list[tuple[FieldDescriptor, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for fd, value in fields:
        result[_field_key(fd)] = _encode_value(fd, value)
    return result


def _field_key(fd: FieldDescriptor) -> str:
    return fd.full_name if fd.is_extension else fd.name


def _is_map(fd: FieldDescriptor) -> bool:
    return (
        fd.is_repeated
        and fd.type == FieldDescriptor.TYPE_MESSAGE
        and fd.message_type.GetOptions().map_entry
    )


def _encode_value(fd: FieldDescriptor, value: Any) -> Any:
    if _is_map(fd):
        value_fd = fd.message_type.fields_by_name["value"]
        return {_map_key(k): _encode_scalar(value_fd, v) for k, v in sorted(value.items())}
    if fd.is_repeated:
        return [_encode_scalar(fd, item) for item in value]
    return _encode_scalar(fd, value)


def _map_key(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)


def _encode_scalar(fd: FieldDescriptor, value: Any) -> Any:
    kind = fd.type
    if kind == FieldDescriptor.TYPE_BOOL:
        return bool(value)
    if kind in _INT_TYPES:
        return int(value)
    if kind == FieldDescriptor.TYPE_FLOAT:
        return _float32(value)
    if kind == FieldDescriptor.TYPE_DOUBLE:
        return _float64(value)
    if kind == FieldDescriptor.TYPE_STRING:
        return str(value)
    if kind == FieldDescriptor.TYPE_BYTES:
        return base64.b64encode(value).decode("ascii")
    if kind == FieldDescriptor.TYPE_ENUM:
        enum_value = fd.enum_type.values_by_number.get(value) if fd.enum_type else None
        return enum_value.name if enum_value is not None else int(value)
    if kind in _MESSAGE_TYPES:
        return encode_message(value)
    return str(value)


def _float64(value: float) -> float | str:
    # JSON has no NaN/Infinity literals
    if not math.isfinite(value):
        return str(value)
    return float(value)


def _float32(value: float) -> float | str:
    """Shortest decimal that reads back as the same float32."""
    if not math.isfinite(value):
        return str(value)
    packed = struct.pack("<f", value)
    for digits in range(6, 10):
        candidate = float(f"{value:.{digits}g}")
        if struct.pack("<f", candidate) == packed:
            return candidate
    return float(value)
