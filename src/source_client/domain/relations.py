"""Links between items and tags attached to items."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import UsageError


class Link(BaseModel):
    """A directed edge from one item key to another."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_key: str = Field(alias="from")
    to_key: str = Field(alias="to")

    def __str__(self) -> str:
        return f"{self.from_key} -> {self.to_key}"


class Tag(BaseModel):
    """A name, optionally with a value, attached to an item."""

    model_config = ConfigDict(frozen=True)

    item_key: str = ""
    name: str
    value: str = ""

    @field_validator("name")
    @classmethod
    def require_name(cls, v: str) -> str:
        # UsageError is not a ValueError, so pydantic lets it through as is
        if not v:
            raise UsageError("a tag name is required")
        return v

    @property
    def segment(self) -> str:
        """Route segment for the tag: 'name' or 'name|value'."""
        if self.value:
            return f"{self.name}|{self.value}"
        return self.name

    def __str__(self) -> str:
        return self.segment
