"""In-memory stand-in for the Source service, served through httpx.MockTransport."""

import base64
import itertools
import json
from dataclasses import dataclass, field

import httpx
import pendulum
import pytest

TEST_HOST = "http://source.test"
TEST_USER = "admin"
TEST_PASSWORD = "adm1n"


@dataclass
class StoredItem:
    key: str
    type: str
    value: bytes
    seq: int
    updated: str

    def to_json(self) -> dict:
        return {
            "key": self.key,
            "type": self.type,
            "value": base64.b64encode(self.value).decode("ascii"),
            "updated": self.updated,
        }


@dataclass
class FakeSourceService:
    """Implements the service routes the client calls.

    Failures queued in `failures` are served first, one per request: an int
    becomes an empty response with that status, an exception is raised as
    if the network failed.
    """

    types: dict[str, dict] = field(default_factory=dict)
    items: dict[str, StoredItem] = field(default_factory=dict)
    tags: dict[str, dict[str, str]] = field(default_factory=dict)
    links: set[tuple[str, str]] = field(default_factory=set)
    requests: list[httpx.Request] = field(default_factory=list)
    failures: list[int | Exception] = field(default_factory=list)
    _seq: itertools.count = field(default_factory=lambda: itertools.count(1))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return httpx.Response(failure)

        parts = request.url.path.strip("/").split("/")
        method = request.method

        if parts == ["type"] and method == "PUT":
            return self._put_type(request)
        if parts[0] == "link" and len(parts) == 4 and parts[2] == "to":
            return self._link(method, parts[1], parts[3])
        if parts[0] != "item" or len(parts) < 2:
            return httpx.Response(404, text="route not found")

        if len(parts) == 4 and parts[1] == "pop" and method == "DELETE":
            return self._pop(parts[2], parts[3])
        if len(parts) == 3 and parts[1] == "tag" and method == "GET":
            return self._list(self._tagged(parts[2].split("|")))
        if len(parts) == 3 and parts[1] == "type" and method == "GET":
            return self._list(i for i in self._ordered() if i.type == parts[2])
        if len(parts) == 3 and parts[2] == "children" and method == "GET":
            return self._list(self._related(parts[1], children=True))
        if len(parts) == 3 and parts[2] == "parents" and method == "GET":
            return self._list(self._related(parts[1], children=False))
        if len(parts) == 4 and parts[2] == "tag":
            return self._tag(method, parts[1], parts[3])
        if len(parts) == 2:
            return self._item(request, parts[1])
        return httpx.Response(404, text="route not found")

    def _put_type(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.types[payload["key"]] = {
            "schema": json.loads(base64.b64decode(payload["schema"])),
            "proto": json.loads(base64.b64decode(payload["proto"])),
        }
        return httpx.Response(201)

    def _item(self, request: httpx.Request, key: str) -> httpx.Response:
        if request.method == "PUT":
            item_type = request.headers.get("Source-Type", "")
            if item_type not in self.types:
                return httpx.Response(400, text=f"item type '{item_type}' not found")
            seq = next(self._seq)
            self.items[key] = StoredItem(
                key=key,
                type=item_type,
                value=request.content,
                seq=seq,
                # Nanosecond precision, as the service reports it
                updated=pendulum.now("UTC").format("YYYY-MM-DD[T]HH:mm:ss.SSSSSS") + "123Z",
            )
            return httpx.Response(201)

        item = self.items.get(key)
        if item is None:
            return httpx.Response(404)
        if request.method == "DELETE":
            del self.items[key]
            self.tags.pop(key, None)
            return httpx.Response(200)
        return httpx.Response(200, json=item.to_json())

    def _pop(self, end: str, item_type: str) -> httpx.Response:
        candidates = [i for i in self._ordered() if i.type == item_type]
        if not candidates:
            return httpx.Response(404)
        item = candidates[0] if end == "oldest" else candidates[-1]
        del self.items[item.key]
        return httpx.Response(200, json=item.to_json())

    def _tag(self, method: str, key: str, segment: str) -> httpx.Response:
        if key not in self.items:
            return httpx.Response(404, text=f"item '{key}' not found")
        name, _, value = segment.partition("|")
        if method == "PUT":
            self.tags.setdefault(key, {})[name] = value
            return httpx.Response(200)
        self.tags.get(key, {}).pop(name, None)
        return httpx.Response(200)

    def _link(self, method: str, from_key: str, to_key: str) -> httpx.Response:
        if method == "PUT":
            if from_key not in self.items or to_key not in self.items:
                return httpx.Response(404, text="cannot link missing items")
            self.links.add((from_key, to_key))
        else:
            self.links.discard((from_key, to_key))
        return httpx.Response(200)

    def _ordered(self) -> list[StoredItem]:
        return sorted(self.items.values(), key=lambda i: i.seq)

    def _tagged(self, names: list[str]):
        return (i for i in self._ordered() if set(self.tags.get(i.key, {})) & set(names))

    def _related(self, key: str, children: bool):
        if children:
            keys = {t for f, t in self.links if f == key}
        else:
            keys = {f for f, t in self.links if t == key}
        return (i for i in self._ordered() if i.key in keys)

    @staticmethod
    def _list(items) -> httpx.Response:
        payload = [i.to_json() for i in items]
        if not payload:
            # The service sends null rather than an empty list
            return httpx.Response(200, content=b"null")
        return httpx.Response(200, json=payload)


@pytest.fixture
def source_service() -> FakeSourceService:
    """Provide an empty fake Source service."""
    return FakeSourceService()
