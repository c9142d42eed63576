"""JSON encoding and typed decoding of item values.

Types are introspected through pydantic TypeAdapters, so anything pydantic
understands (models, dataclasses, TypedDicts, builtins and generics of them)
can be stored, loaded and described by a JSON schema.
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
from functools import lru_cache
from typing import Any, get_origin

from pydantic import BaseModel, PydanticUserError, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from .base import DecodeError, EncodeError, SchemaError, UsageError


@lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def _is_type(prototype: Any) -> bool:
    return isinstance(prototype, type) or get_origin(prototype) is not None


def from_base64(v: Any) -> Any:
    """Accept byte fields sent as standard base64 strings."""
    if isinstance(v, str):
        try:
            return base64.b64decode(v, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return v


def to_base64(v: bytes) -> str:
    return base64.b64encode(v).decode("ascii")


def encode(value: Any) -> bytes:
    """Serialize a value to JSON bytes."""
    try:
        return _adapter(type(value)).dump_json(value)
    except (PydanticUserError, PydanticSerializationError, TypeError) as e:
        raise EncodeError(f"cannot encode {type(value).__name__}: {e}") from e


def json_schema(example: Any) -> dict[str, Any]:
    """Derive a JSON schema from the type of an example value.

    Only the shape of the example matters, never its values.
    """
    try:
        return _adapter(type(example)).json_schema()
    except (PydanticUserError, TypeError) as e:
        raise SchemaError(
            f"cannot derive a schema from {type(example).__name__}: {e}"
        ) from e


def decode(payload: bytes | str, prototype: Any) -> Any:
    """Decode a JSON payload guided by a prototype.

    The prototype is either a type, in which case a new value is returned,
    or a mutable model/dataclass instance, which is populated in place and
    returned. Field types are checked strictly; unknown fields are ignored
    unless the model keeps them (extra="allow").

    Raises:
        UsageError: prototype is neither a type nor a mutable instance
        DecodeError: payload does not match the prototype's shape
    """
    if _is_type(prototype):
        try:
            adapter = _adapter(prototype)
        except PydanticUserError as e:
            raise UsageError(f"cannot decode into {prototype!r}: {e}") from e
        try:
            return adapter.validate_json(payload, strict=True)
        except PydanticValidationError as e:
            raise DecodeError(f"cannot decode value as {_type_name(prototype)}: {e}") from e

    if isinstance(prototype, BaseModel):
        if prototype.model_config.get("frozen"):
            raise UsageError(
                f"prototype {type(prototype).__name__} is frozen and cannot be populated"
            )
        decoded = decode(payload, type(prototype))
        for name in type(prototype).model_fields:
            setattr(prototype, name, getattr(decoded, name))
        if prototype.model_config.get("extra") == "allow":
            extra = dict(decoded.__pydantic_extra__ or {})
            object.__setattr__(prototype, "__pydantic_extra__", extra)
        return prototype

    if dataclasses.is_dataclass(prototype):
        if type(prototype).__dataclass_params__.frozen:
            raise UsageError(
                f"prototype {type(prototype).__name__} is frozen and cannot be populated"
            )
        decoded = decode(payload, type(prototype))
        for f in dataclasses.fields(prototype):
            setattr(prototype, f.name, getattr(decoded, f.name))
        return prototype

    raise UsageError(
        "prototype must be a type or a mutable model/dataclass instance, "
        f"got {type(prototype).__name__}"
    )


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", repr(tp))
