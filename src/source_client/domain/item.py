"""Opaque configuration items as returned by the Source service."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any

import pendulum
from pydantic import BaseModel, ConfigDict, RootModel, field_serializer, field_validator

from . import codec
from .base import DecodeError

# The service reports nanosecond precision; Python stops at microseconds
_SUBSECOND = re.compile(r"(\.\d{6})\d+")


class Item(BaseModel):
    """A stored configuration item before it is interpreted as a concrete type.

    The value is kept as raw JSON bytes and only decoded when typed() is called.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    type: str
    value: bytes = b""
    updated: datetime | None = None

    @field_validator("value", mode="before")
    @classmethod
    def decode_value(cls, v: Any) -> Any:
        return codec.from_base64(v)

    @field_validator("updated", mode="before")
    @classmethod
    def parse_updated(cls, v: Any) -> Any:
        """Parse service timestamps, truncating sub-microsecond digits."""
        if isinstance(v, str) and v:
            return pendulum.parse(_SUBSECOND.sub(r"\1", v))
        return v or None

    @field_serializer("value", when_used="json")
    def encode_value(self, v: bytes) -> str:
        return codec.to_base64(v)

    def typed(self, prototype: Any) -> Any:
        """Decode the item value using a prototype.

        Args:
            prototype: A type to build a new value from, or a mutable
                model/dataclass instance to populate in place

        Returns:
            The decoded value (the prototype itself when an instance is given)

        Raises:
            UsageError: prototype is not a type or a mutable instance
            DecodeError: the value does not match the prototype's shape
        """
        try:
            return codec.decode(self.value, prototype)
        except DecodeError as e:
            raise DecodeError(f"item '{self.key}': {e}") from e.__cause__


class ItemList(RootModel[list[Item]]):
    """An ordered list of items, in the order the service returned them."""

    @field_validator("root", mode="before")
    @classmethod
    def null_is_empty(cls, v: Any) -> Any:
        # The service encodes an empty result as JSON null
        return [] if v is None else v

    def __iter__(self) -> Iterator[Item]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Item:
        return self.root[index]

    def keys(self) -> list[str]:
        """Get the item keys in order."""
        return [item.key for item in self.root]

    def typed(self, factory: Callable[[], Any] | type) -> list[Any]:
        """Decode every item, all or nothing.

        Args:
            factory: Zero-argument callable returning a fresh prototype for
                each item. A type is used directly as the prototype.

        Returns:
            The decoded values in item order

        Raises:
            DecodeError: on the first item that fails; no partial list is returned
        """
        results = []
        for item in self.root:
            prototype = factory if isinstance(factory, type) else factory()
            results.append(item.typed(prototype))
        return results
