"""User record schema with its Firestore codec."""
from datetime import datetime
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from firedocs.schemas.wire import IntegerValue, StringValue, TimestampValue, WireFields, WireValue
from firedocs.services.firestore.codec import (
    format_timestamp,
    read_integer,
    read_optional_string,
    read_string,
    read_timestamp,
    utc_now,
)


class User(BaseModel):
    """
    A user account document.

    ``name`` and ``email`` are mandatory when decoding. ``age`` falls back
    to 0 when missing or malformed, timestamps fall back to the decode time
    and ``id`` to ``None``.
    """
    id: Optional[str] = Field(None, description="Document id; not written when unset")
    name: str
    email: str
    age: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_wire(self) -> WireFields:
        fields: WireFields = {}
        if self.id is not None:
            fields["id"] = StringValue(value=self.id)
        fields["name"] = StringValue(value=self.name)
        fields["email"] = StringValue(value=self.email)
        fields["age"] = IntegerValue.of(self.age)
        fields["created_at"] = TimestampValue(value=format_timestamp(self.created_at))
        fields["updated_at"] = TimestampValue(value=format_timestamp(self.updated_at))
        return fields

    @classmethod
    def from_wire(cls, fields: Mapping[str, WireValue]) -> "User":
        return cls(
            id=read_optional_string(fields, "id"),
            name=read_string(fields, "name"),
            email=read_string(fields, "email"),
            age=max(read_integer(fields, "age"), 0),
            created_at=read_timestamp(fields, "created_at"),
            updated_at=read_timestamp(fields, "updated_at"),
        )
