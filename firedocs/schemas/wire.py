"""Firestore wire value schemas.

A ``WireValue`` is one of the variants below. The ``kind`` field is the
discriminator; exactly one variant is ever populated. ``IntegerValue``
keeps its value as a decimal string, the same way the REST API sends it,
so 64-bit values survive the trip through JSON.
"""
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _WireBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class StringValue(_WireBase):
    kind: Literal["string"] = "string"
    value: str


class IntegerValue(_WireBase):
    kind: Literal["integer"] = "integer"
    value: str

    @classmethod
    def of(cls, number: int) -> "IntegerValue":
        return cls(value=str(number))


class DoubleValue(_WireBase):
    kind: Literal["double"] = "double"
    value: float


class BooleanValue(_WireBase):
    kind: Literal["boolean"] = "boolean"
    value: bool


class TimestampValue(_WireBase):
    """RFC3339 timestamp, stored as the string the store sent."""

    kind: Literal["timestamp"] = "timestamp"
    value: str


class NullValue(_WireBase):
    kind: Literal["null"] = "null"


class ArrayValue(_WireBase):
    kind: Literal["array"] = "array"
    values: List["WireValue"] = Field(default_factory=list)


class MapValue(_WireBase):
    """Nested map. Equality ignores key order; iteration keeps insertion order."""

    kind: Literal["map"] = "map"
    fields: Dict[str, "WireValue"] = Field(default_factory=dict)


class UnknownValue(_WireBase):
    """A wire tag this library does not model (reference, geo point, bytes, ...)."""

    kind: Literal["unknown"] = "unknown"
    tag: str
    raw: Any = None


WireValue = Annotated[
    Union[
        StringValue,
        IntegerValue,
        DoubleValue,
        BooleanValue,
        TimestampValue,
        NullValue,
        ArrayValue,
        MapValue,
        UnknownValue,
    ],
    Field(discriminator="kind"),
]

WireFields = Dict[str, WireValue]

ArrayValue.model_rebuild()
MapValue.model_rebuild()
