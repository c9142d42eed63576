"""Typed Python client for the Source configuration item service."""

from .client import SourceClient
from .config import ClientOptions, SourceSettings, get_settings
from .domain import (
    DecodeError,
    EncodeError,
    Item,
    ItemList,
    Link,
    RemoteError,
    SchemaError,
    SourceClientError,
    Tag,
    TransportError,
    TypeDescriptor,
    UsageError,
    Validatable,
    ValidationError,
)
from .utils.key_sequencer import KeySequencer, resolve_key
from .version import __version__

__all__ = [
    "ClientOptions",
    "DecodeError",
    "EncodeError",
    "Item",
    "ItemList",
    "KeySequencer",
    "Link",
    "RemoteError",
    "SchemaError",
    "SourceClient",
    "SourceClientError",
    "SourceSettings",
    "Tag",
    "TransportError",
    "TypeDescriptor",
    "UsageError",
    "Validatable",
    "ValidationError",
    "__version__",
    "get_settings",
    "resolve_key",
]
