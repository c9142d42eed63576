"""Domain models for the Source client."""

from .base import (
    DecodeError,
    EncodeError,
    RemoteError,
    SchemaError,
    SourceClientError,
    TransportError,
    UsageError,
    Validatable,
    ValidationError,
)
from .item import Item, ItemList
from .relations import Link, Tag
from .type_descriptor import TypeDescriptor

__all__ = [
    "DecodeError",
    "EncodeError",
    "Item",
    "ItemList",
    "Link",
    "RemoteError",
    "SchemaError",
    "SourceClientError",
    "Tag",
    "TransportError",
    "TypeDescriptor",
    "UsageError",
    "Validatable",
    "ValidationError",
]
