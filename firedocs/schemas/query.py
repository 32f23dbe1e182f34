"""Structured query schemas for the Firestore ``runQuery`` endpoint."""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from firedocs.schemas.wire import WireValue
from firedocs.services.firestore.values import encode_value


class CompositeOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class FieldOperator(str, Enum):
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    EQUAL = "EQUAL"
    NOT_EQUAL = "NOT_EQUAL"
    ARRAY_CONTAINS = "ARRAY_CONTAINS"
    IN = "IN"
    ARRAY_CONTAINS_ANY = "ARRAY_CONTAINS_ANY"
    NOT_IN = "NOT_IN"


# Operators whose value is a list, sent as an arrayValue
LIST_OPERATORS = frozenset({FieldOperator.IN, FieldOperator.NOT_IN, FieldOperator.ARRAY_CONTAINS_ANY})

# Symbolic spellings accepted on the command line and by create_filter
OPERATOR_ALIASES = {
    "<": FieldOperator.LESS_THAN,
    "<=": FieldOperator.LESS_THAN_OR_EQUAL,
    ">": FieldOperator.GREATER_THAN,
    ">=": FieldOperator.GREATER_THAN_OR_EQUAL,
    "==": FieldOperator.EQUAL,
    "!=": FieldOperator.NOT_EQUAL,
    "array-contains": FieldOperator.ARRAY_CONTAINS,
    "in": FieldOperator.IN,
    "array-contains-any": FieldOperator.ARRAY_CONTAINS_ANY,
    "not-in": FieldOperator.NOT_IN,
}


class UnaryOperator(str, Enum):
    IS_NAN = "IS_NAN"
    IS_NULL = "IS_NULL"
    IS_NOT_NAN = "IS_NOT_NAN"
    IS_NOT_NULL = "IS_NOT_NULL"


class Direction(str, Enum):
    ASCENDING = "ASCENDING"
    DESCENDING = "DESCENDING"


class _QueryBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class CollectionSelector(_QueryBase):
    collection_id: str
    all_descendants: Optional[bool] = None

    def to_wire_json(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"collectionId": self.collection_id}
        if self.all_descendants is not None:
            body["allDescendants"] = self.all_descendants
        return body


class FieldFilter(_QueryBase):
    field: str = Field(..., description="Field path, dotted for nested maps")
    op: FieldOperator
    value: WireValue

    def to_wire_json(self) -> Dict[str, Any]:
        return {
            "fieldFilter": {
                "field": {"fieldPath": self.field},
                "op": self.op.value,
                "value": encode_value(self.value),
            }
        }


class UnaryFilter(_QueryBase):
    op: UnaryOperator
    field: str

    def to_wire_json(self) -> Dict[str, Any]:
        return {"unaryFilter": {"op": self.op.value, "field": {"fieldPath": self.field}}}


class CompositeFilter(_QueryBase):
    op: CompositeOperator
    filters: List["Filter"]

    def to_wire_json(self) -> Dict[str, Any]:
        return {
            "compositeFilter": {
                "op": self.op.value,
                "filters": [child.to_wire_json() for child in self.filters],
            }
        }


Filter = Union[CompositeFilter, FieldFilter, UnaryFilter]

CompositeFilter.model_rebuild()


class Order(_QueryBase):
    field: str
    direction: Direction = Direction.ASCENDING

    def to_wire_json(self) -> Dict[str, Any]:
        return {"field": {"fieldPath": self.field}, "direction": self.direction.value}


class StructuredQuery(_QueryBase):
    """An immutable query: one collection selector, at most one filter root."""

    from_: List[CollectionSelector] = Field(..., alias="from")
    where: Optional[Filter] = None
    order_by: Optional[List[Order]] = None
    limit: Optional[int] = Field(None, ge=0)
    offset: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def collection_id(self) -> str:
        return self.from_[0].collection_id

    def to_wire_json(self) -> Dict[str, Any]:
        """Render the camelCase body expected under ``structuredQuery``."""
        body: Dict[str, Any] = {"from": [selector.to_wire_json() for selector in self.from_]}
        if self.where is not None:
            body["where"] = self.where.to_wire_json()
        if self.order_by is not None:
            body["orderBy"] = [order.to_wire_json() for order in self.order_by]
        if self.limit is not None:
            body["limit"] = self.limit
        if self.offset is not None:
            body["offset"] = self.offset
        return body
