"""Fluent builder for Firestore structured queries."""
from typing import Any, Iterable, List, Optional, Union

from firedocs.exceptions import ValidationError
from firedocs.schemas.query import (
    LIST_OPERATORS,
    OPERATOR_ALIASES,
    CollectionSelector,
    CompositeFilter,
    CompositeOperator,
    Direction,
    FieldFilter,
    FieldOperator,
    Filter,
    Order,
    StructuredQuery,
    UnaryFilter,
    UnaryOperator,
)
from firedocs.schemas.wire import ArrayValue
from firedocs.services.firestore.values import ensure_wire_value, values_from_dynamic


def resolve_operator(op: Union[str, FieldOperator]) -> FieldOperator:
    """
    Accept an operator as enum, enum name (``"GREATER_THAN"``) or symbol (``">"``).

    Raises:
        ValidationError: for an unknown operator
    """
    if isinstance(op, FieldOperator):
        return op
    if op in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[op]
    try:
        return FieldOperator(op.upper())
    except ValueError:
        raise ValidationError(f"Unknown query operator: {op}") from None


def create_filter(field: str, op: Union[str, FieldOperator], value: Any) -> FieldFilter:
    """
    Create a field filter.

    ``value`` may be a wire value or a plain Python value. For ``IN``,
    ``NOT_IN`` and ``ARRAY_CONTAINS_ANY`` it must be a list and is sent as
    an array value.
    """
    operator = resolve_operator(op)
    if operator in LIST_OPERATORS and not isinstance(value, ArrayValue):
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"Operator {operator.value} on '{field}' needs a list of values")
        value = ArrayValue(values=values_from_dynamic(list(value)))
    return FieldFilter(field=field, op=operator, value=ensure_wire_value(value))


class QueryBuilder:
    """
    Immutable builder for :class:`StructuredQuery`. Every method returns a new builder.

    Watch out: each ``where_*``, ``where``, ``and_`` and ``or_`` call
    **replaces** the filter. ``where_eq("age", 30).where_gt("age", 25)``
    filters on ``age > 25`` only. To combine conditions build them with
    :func:`create_filter` and pass them to :meth:`and_` or :meth:`or_`.

    ``order_by`` on the other hand accumulates in call order, and ``limit``
    and ``offset`` overwrite any earlier value.
    """

    def __init__(
        self,
        collection: str,
        *,
        all_descendants: Optional[bool] = None,
        where: Optional[Filter] = None,
        order_by: Optional[List[Order]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        self._collection = collection.strip("/")
        self._all_descendants = all_descendants
        self._where = where
        self._order_by = list(order_by) if order_by else None
        self._limit = limit
        self._offset = offset

    def _copy(self, **changes) -> "QueryBuilder":
        state = {
            "all_descendants": self._all_descendants,
            "where": self._where,
            "order_by": self._order_by,
            "limit": self._limit,
            "offset": self._offset,
        }
        state.update(changes)
        return QueryBuilder(self._collection, **state)

    def all_descendants(self, enabled: bool = True) -> "QueryBuilder":
        """Query every collection with this id, at any depth."""
        return self._copy(all_descendants=enabled)

    # Filters: each call replaces the current filter root

    def where(self, filter_: Filter) -> "QueryBuilder":
        return self._copy(where=filter_)

    def where_field(self, field: str, op: Union[str, FieldOperator], value: Any) -> "QueryBuilder":
        return self.where(create_filter(field, op, value))

    def where_eq(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.EQUAL, value)

    def where_ne(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.NOT_EQUAL, value)

    def where_lt(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.LESS_THAN, value)

    def where_lte(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.LESS_THAN_OR_EQUAL, value)

    def where_gt(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.GREATER_THAN, value)

    def where_gte(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.GREATER_THAN_OR_EQUAL, value)

    def where_array_contains(self, field: str, value: Any) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.ARRAY_CONTAINS, value)

    def where_array_contains_any(self, field: str, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.ARRAY_CONTAINS_ANY, list(values))

    def where_in(self, field: str, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.IN, list(values))

    def where_not_in(self, field: str, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_field(field, FieldOperator.NOT_IN, list(values))

    def where_is_null(self, field: str) -> "QueryBuilder":
        return self.where(UnaryFilter(op=UnaryOperator.IS_NULL, field=field))

    def where_is_not_null(self, field: str) -> "QueryBuilder":
        return self.where(UnaryFilter(op=UnaryOperator.IS_NOT_NULL, field=field))

    def where_is_nan(self, field: str) -> "QueryBuilder":
        return self.where(UnaryFilter(op=UnaryOperator.IS_NAN, field=field))

    def where_is_not_nan(self, field: str) -> "QueryBuilder":
        return self.where(UnaryFilter(op=UnaryOperator.IS_NOT_NAN, field=field))

    def and_(self, filters: Iterable[Filter]) -> "QueryBuilder":
        return self.where(CompositeFilter(op=CompositeOperator.AND, filters=list(filters)))

    def or_(self, filters: Iterable[Filter]) -> "QueryBuilder":
        return self.where(CompositeFilter(op=CompositeOperator.OR, filters=list(filters)))

    # Ordering and paging

    def order_by(self, field: str, descending: bool = False) -> "QueryBuilder":
        direction = Direction.DESCENDING if descending else Direction.ASCENDING
        orders = list(self._order_by or [])
        orders.append(Order(field=field, direction=direction))
        return self._copy(order_by=orders)

    def limit(self, limit: int) -> "QueryBuilder":
        """
        Raises:
            ValidationError: when ``limit`` is negative
        """
        if limit < 0:
            raise ValidationError(f"Limit must not be negative: {limit}")
        return self._copy(limit=limit)

    def offset(self, offset: int) -> "QueryBuilder":
        if offset < 0:
            raise ValidationError(f"Offset must not be negative: {offset}")
        return self._copy(offset=offset)

    def build(self) -> StructuredQuery:
        return StructuredQuery(
            from_=[CollectionSelector(collection_id=self._collection, all_descendants=self._all_descendants)],
            where=self._where,
            order_by=self._order_by,
            limit=self._limit,
            offset=self._offset,
        )
