"""Client for storing and retrieving typed configuration items."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from source_client.config import ClientOptions, SourceSettings, get_settings
from source_client.domain import codec
from source_client.domain.base import DecodeError, UsageError
from source_client.domain.item import Item, ItemList
from source_client.domain.relations import Link, Tag
from source_client.domain.type_descriptor import TypeDescriptor
from source_client.infrastructure.transport import (
    DEFAULT_RETRY_MAX,
    DEFAULT_RETRY_WAIT_MAX,
    DEFAULT_RETRY_WAIT_MIN,
    RequestExecutor,
)
from source_client.metrics import track_operation
from source_client.utils.key_sequencer import KeySequencer

logger = structlog.get_logger()

Factory = Callable[[], Any] | type


def has_validate(item: Any) -> bool:
    """Check whether an item can validate itself before it is saved."""
    method = getattr(type(item), "validate", None)
    # BaseModel.validate is pydantic's deprecated constructor, not a check
    if getattr(method, "__func__", None) is BaseModel.validate.__func__:
        return False
    return callable(method)


class SourceClient:
    """Typed access to the items, types, tags and links of a Source service."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        options: ClientOptions | None = None,
        *,
        retry_max: int = DEFAULT_RETRY_MAX,
        retry_wait_min: float = DEFAULT_RETRY_WAIT_MIN,
        retry_wait_max: float = DEFAULT_RETRY_WAIT_MAX,
        transport: httpx.BaseTransport | None = None,
        key_sequencer: KeySequencer | None = None,
    ):
        """Initialize with the service address and credentials.

        Raises:
            ValidationError: options are not acceptable (timeout under 30s)
        """
        self.options = options or ClientOptions()
        self.options.validate()
        self.executor = RequestExecutor(
            host,
            user,
            password,
            self.options,
            retry_max=retry_max,
            retry_wait_min=retry_wait_min,
            retry_wait_max=retry_wait_max,
            transport=transport,
        )
        self.key_sequencer = key_sequencer or KeySequencer()

    @classmethod
    def from_settings(
        cls,
        settings: SourceSettings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> SourceClient:
        """Create a client from environment settings."""
        settings = settings or get_settings()
        return cls(
            settings.host,
            settings.user,
            settings.password,
            settings.client_options(),
            retry_max=settings.retry_max,
            retry_wait_min=settings.retry_wait_min,
            retry_wait_max=settings.retry_wait_max,
            transport=transport,
        )

    def close(self) -> None:
        """Release pooled connections."""
        self.executor.close()

    def __enter__(self) -> SourceClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Types

    @track_operation("set_type")
    def set_type(self, key: str, example: Any) -> None:
        """Register an item type from an example value.

        The JSON schema is derived from the example's type and the example
        itself is sent as the type's prototype.

        Raises:
            SchemaError: the example's type cannot be described
            RemoteError: the service rejected the type
        """
        descriptor = TypeDescriptor.from_example(key, example)
        self.executor.execute(
            "PUT", "/type", body=descriptor.to_json(), operation="set type"
        )
        logger.info("source_type_registered", type=key)

    # Items

    @track_operation("save")
    def save(self, key: str, item_type: str, item: Any) -> str:
        """Save a configuration item under a key, validated by item_type.

        A '?' in the key is replaced with a UTC timestamp sequence.

        Returns:
            The key the item was saved under

        Raises:
            UsageError: item is missing or a class, item_type is empty, or
                item has no validate() method
            ValidationError: item.validate() rejected the item
            EncodeError: item cannot be serialized
            RemoteError: the service rejected the item
        """
        if item is None or isinstance(item, type):
            raise UsageError("item passed to save() must be an instance, not a type")
        if not item_type:
            raise UsageError("item type is required to validate the item data")
        if not has_validate(item):
            raise UsageError(
                f"item passed to save() must implement validate(), got {type(item).__name__}"
            )
        item.validate()

        key = self.key_sequencer.resolve(key)
        self.executor.execute(
            "PUT",
            "/item/{}",
            key,
            body=codec.encode(item),
            item_type=item_type,
            operation="save item",
        )
        return key

    @track_operation("load")
    def load_raw(self, key: str) -> Item:
        """Load the raw configuration item identified by key."""
        response = self.executor.execute("GET", "/item/{}", key, operation="get item")
        return self._item(response)

    def load(self, key: str, prototype: Any) -> Any:
        """Load the configuration item identified by key as a typed value.

        Args:
            key: Item key
            prototype: A type, or a mutable instance to populate
        """
        return self.load_raw(key).typed(prototype)

    @track_operation("delete")
    def delete(self, key: str) -> None:
        """Delete the item identified by key."""
        self.executor.execute("DELETE", "/item/{}", key, operation="delete item")

    # Queues

    @track_operation("pop_oldest")
    def pop_oldest_raw(self, item_type: str) -> Item | None:
        """Remove and return the oldest item of a type, or None if there is none."""
        return self._pop("oldest", item_type)

    def pop_oldest(self, item_type: str, prototype: Any) -> Any | None:
        item = self.pop_oldest_raw(item_type)
        if item is None:
            return None
        return item.typed(prototype)

    @track_operation("pop_newest")
    def pop_newest_raw(self, item_type: str) -> Item | None:
        """Remove and return the newest item of a type, or None if there is none."""
        return self._pop("newest", item_type)

    def pop_newest(self, item_type: str, prototype: Any) -> Any | None:
        item = self.pop_newest_raw(item_type)
        if item is None:
            return None
        return item.typed(prototype)

    def _pop(self, end: str, item_type: str) -> Item | None:
        response = self.executor.execute(
            "DELETE",
            "/item/pop/{}/{}",
            end,
            item_type,
            operation=f"pop {end} item",
            empty_on_not_found=True,
        )
        if response is None:
            return None
        return self._item(response)

    # Queries

    @track_operation("load_by_tag")
    def load_items_by_tag_raw(self, *tags: str) -> ItemList:
        """Load the items carrying any of the given tags."""
        if not tags:
            raise UsageError("at least one tag is required")
        response = self.executor.execute(
            "GET", "/item/tag/{}", "|".join(tags), operation="get tagged items"
        )
        return self._items(response)

    def load_items_by_tag(self, factory: Factory, *tags: str) -> list[Any]:
        return self.load_items_by_tag_raw(*tags).typed(factory)

    @track_operation("load_by_type")
    def load_items_by_type_raw(self, item_type: str) -> ItemList:
        """Load all items of a type."""
        response = self.executor.execute(
            "GET",
            "/item/type/{}",
            item_type,
            operation=f"get items for type '{item_type}'",
        )
        return self._items(response)

    def load_items_by_type(self, factory: Factory, item_type: str) -> list[Any]:
        """Load all items of a type as typed values.

        Args:
            factory: Zero-argument callable returning a fresh prototype per
                item, or a type used for every item
            item_type: Registered type name
        """
        return self.load_items_by_type_raw(item_type).typed(factory)

    @track_operation("load_children")
    def load_children_raw(self, key: str) -> ItemList:
        """Load the items linked from the given item."""
        response = self.executor.execute(
            "GET", "/item/{}/children", key, operation="get children for item"
        )
        return self._items(response)

    def load_children(self, factory: Factory, key: str) -> list[Any]:
        return self.load_children_raw(key).typed(factory)

    @track_operation("load_parents")
    def load_parents_raw(self, key: str) -> ItemList:
        """Load the items linking to the given item."""
        response = self.executor.execute(
            "GET", "/item/{}/parents", key, operation="get parents for item"
        )
        return self._items(response)

    def load_parents(self, factory: Factory, key: str) -> list[Any]:
        return self.load_parents_raw(key).typed(factory)

    # Tags and links

    @track_operation("tag")
    def tag(self, key: str, name: str, value: str = "") -> None:
        """Attach a tag, with an optional value, to an item."""
        tag = Tag(item_key=key, name=name, value=value)
        self.executor.execute(
            "PUT", "/item/{}/tag/{}", key, tag.segment, operation="tag item"
        )

    @track_operation("untag")
    def untag(self, key: str, name: str) -> None:
        """Remove a tag from an item."""
        tag = Tag(item_key=key, name=name)
        self.executor.execute(
            "DELETE", "/item/{}/tag/{}", key, tag.name, operation="untag item"
        )

    @track_operation("link")
    def link(self, from_key: str, to_key: str) -> None:
        """Make to_key a child of from_key."""
        link = Link(from_key=from_key, to_key=to_key)
        self.executor.execute(
            "PUT", "/link/{}/to/{}", link.from_key, link.to_key, operation="link items"
        )

    @track_operation("unlink")
    def unlink(self, from_key: str, to_key: str) -> None:
        """Remove the link between two items."""
        link = Link(from_key=from_key, to_key=to_key)
        self.executor.execute(
            "DELETE", "/link/{}/to/{}", link.from_key, link.to_key, operation="unlink items"
        )

    # Response decoding

    @staticmethod
    def _item(response: httpx.Response) -> Item:
        try:
            return Item.model_validate_json(response.content)
        except PydanticValidationError as e:
            raise DecodeError(f"cannot unmarshal response body: {e}") from e

    @staticmethod
    def _items(response: httpx.Response) -> ItemList:
        if not response.content.strip():
            return ItemList([])
        try:
            return ItemList.model_validate_json(response.content)
        except PydanticValidationError as e:
            raise DecodeError(f"cannot unmarshal response body: {e}") from e
