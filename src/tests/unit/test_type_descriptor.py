"""Tests for type descriptors and JSON encoding of values."""
import base64
import json
from datetime import timedelta

import pytest

from source_client.config import ClientOptions
from source_client.domain import EncodeError, SchemaError, TypeDescriptor
from source_client.domain import codec
from tests.fixtures.models import Endpoint


class Opaque:
    """A class pydantic knows nothing about."""

    def __init__(self):
        self.handle = object()


class TestTypeDescriptor:
    """Test building descriptors from example values."""

    def test_schema_comes_from_the_example_type(self):
        """Test that the schema describes the example's fields."""
        descriptor = TypeDescriptor.from_example(
            "AAA", ClientOptions(insecure_transport=False)
        )

        schema = descriptor.schema_dict()
        assert descriptor.key == "AAA"
        assert schema["type"] == "object"
        assert schema["properties"]["insecure_transport"]["type"] == "boolean"
        assert schema["properties"]["request_timeout"]["format"] == "duration"

    def test_schema_ignores_example_values(self):
        """Test that two examples of one type produce the same schema."""
        first = TypeDescriptor.from_example("E", Endpoint(name="a", port=1))
        second = TypeDescriptor.from_example("E", Endpoint(name="b", port=2, tags=["x"]))

        assert first.json_schema == second.json_schema
        assert first.proto != second.proto

    def test_proto_is_the_encoded_example(self):
        """Test that the prototype carries the example's values."""
        descriptor = TypeDescriptor.from_example("E", Endpoint(name="api", port=80))

        assert json.loads(descriptor.proto) == {"name": "api", "port": 80, "tags": []}

    def test_wire_format_uses_base64(self):
        """Test the registration body: key plus base64 schema and proto."""
        descriptor = TypeDescriptor.from_example("E", Endpoint(name="api"))

        body = json.loads(descriptor.to_json())

        assert set(body) == {"key", "schema", "proto"}
        assert base64.b64decode(body["schema"]) == descriptor.json_schema
        assert base64.b64decode(body["proto"]) == descriptor.proto

    def test_parses_its_own_wire_format(self):
        """Test that a descriptor read back from JSON matches the one sent."""
        descriptor = TypeDescriptor.from_example("E", Endpoint(name="api"))

        assert TypeDescriptor.model_validate_json(descriptor.to_json()) == descriptor

    def test_unintrospectable_type_fails(self):
        """Test that a type without a schema raises SchemaError."""
        with pytest.raises(SchemaError, match="Opaque"):
            TypeDescriptor.from_example("X", Opaque())


class TestEncode:
    """Test value serialization."""

    def test_encodes_models(self):
        """Test that models are encoded as JSON objects."""
        assert json.loads(codec.encode(Endpoint(name="db", port=5432))) == {
            "name": "db",
            "port": 5432,
            "tags": [],
        }

    def test_encodes_dataclasses(self):
        """Test that timedeltas are written as ISO 8601 durations."""
        options = ClientOptions(request_timeout=timedelta(seconds=90))
        encoded = json.loads(codec.encode(options))

        assert encoded["insecure_transport"] is True
        assert encoded["request_timeout"].startswith("PT")
        assert codec.decode(json.dumps(encoded), ClientOptions) == options

    def test_unserializable_value_fails(self):
        """Test that values pydantic cannot serialize raise EncodeError."""
        with pytest.raises(EncodeError, match="Opaque"):
            codec.encode(Opaque())


class TestBase64:
    """Test the byte field helpers."""

    def test_decodes_strings(self):
        assert codec.from_base64("aGVsbG8=") == b"hello"

    def test_passes_bytes_through(self):
        assert codec.from_base64(b"raw") == b"raw"

    def test_rejects_invalid_input(self):
        with pytest.raises(ValueError, match="invalid base64"):
            codec.from_base64("%%%")
