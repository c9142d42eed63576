"""Type descriptors registered with the service before items are saved."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from . import codec


class TypeDescriptor(BaseModel):
    """A JSON schema plus a canonical example for a named item type."""

    model_config = ConfigDict(populate_by_name=True)

    key: str
    json_schema: bytes = Field(alias="schema")
    proto: bytes

    @field_validator("json_schema", "proto", mode="before")
    @classmethod
    def decode_bytes(cls, v: Any) -> Any:
        return codec.from_base64(v)

    @field_serializer("json_schema", "proto", when_used="json")
    def encode_bytes(self, v: bytes) -> str:
        return codec.to_base64(v)

    @classmethod
    def from_example(cls, key: str, example: Any) -> TypeDescriptor:
        """Build a descriptor from an example value.

        The schema comes from the example's type; the prototype is the
        example's current values.

        Raises:
            SchemaError: the example's type cannot be described
            EncodeError: the example cannot be serialized
        """
        schema = codec.json_schema(example)
        return cls(
            key=key,
            json_schema=json.dumps(schema).encode("utf-8"),
            proto=codec.encode(example),
        )

    def schema_dict(self) -> dict[str, Any]:
        """Get the schema as a dictionary."""
        return json.loads(self.json_schema)

    def to_json(self) -> bytes:
        """Serialize for the registration request."""
        return self.model_dump_json(by_alias=True).encode("utf-8")
