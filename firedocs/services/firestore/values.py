"""Conversion between Firestore wire values, wire JSON and plain Python values.

Three representations meet here:

* wire JSON: what the REST API sends, e.g. ``{"integerValue": "30"}``
* :data:`~firedocs.schemas.wire.WireValue`: the typed tagged union
* dynamic values: ``str``/``int``/``float``/``bool``/``None``/``list``/``dict``
"""
import logging
from typing import Any, Dict, List, Mapping

from firedocs.exceptions import SerializationError, ValidationError
from firedocs.schemas.wire import (
    ArrayValue,
    BooleanValue,
    DoubleValue,
    IntegerValue,
    MapValue,
    NullValue,
    StringValue,
    TimestampValue,
    UnknownValue,
    WireFields,
    WireValue,
)

logger = logging.getLogger(__name__)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def wire_type_name(value: WireValue) -> str:
    """
    Get a human-readable type name for a wire value.

    Args:
        value: The value to get the type for

    Returns:
        A string such as ``"string"`` or ``"map"``; unknown tags are reported
        by their wire key
    """
    if isinstance(value, UnknownValue):
        return value.tag
    return value.kind


# ---------------------------------------------------------------------------
# WireValue <-> dynamic value
# ---------------------------------------------------------------------------

def to_dynamic(value: WireValue) -> Any:
    """
    Convert a wire value to a plain Python value. Never raises.

    Integer strings that do not parse are returned unchanged as strings,
    timestamps become their RFC3339 string and unknown tags become a
    ``"<unsupported:tag>"`` placeholder.
    """
    if isinstance(value, StringValue):
        return value.value
    if isinstance(value, IntegerValue):
        try:
            return int(value.value)
        except ValueError:
            logger.warning(f"Integer value {value.value!r} is not a valid integer, keeping it as text")
            return value.value
    if isinstance(value, DoubleValue):
        return value.value
    if isinstance(value, BooleanValue):
        return value.value
    if isinstance(value, TimestampValue):
        return value.value
    if isinstance(value, NullValue):
        return None
    if isinstance(value, ArrayValue):
        return [to_dynamic(item) for item in value.values]
    if isinstance(value, MapValue):
        return {key: to_dynamic(item) for key, item in value.fields.items()}
    return f"<unsupported:{value.tag}>"


def from_dynamic(value: Any) -> WireValue:
    """
    Convert a plain Python value to a wire value.

    ``int`` becomes an integer value and ``float`` a double, mirroring how
    ``json.loads`` tells ``30`` apart from ``30.0``.

    Raises:
        SerializationError: for integers outside the signed 64-bit range or
            values that have no wire representation
    """
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return BooleanValue(value=value)
    if isinstance(value, int):
        if value < INT64_MIN or value > INT64_MAX:
            raise SerializationError(
                f"Integer {value} does not fit in 64 bits",
                hint="Store very large numbers as strings.",
            )
        return IntegerValue.of(value)
    if isinstance(value, float):
        return DoubleValue(value=value)
    if isinstance(value, str):
        return StringValue(value=value)
    if value is None:
        return NullValue()
    if isinstance(value, (list, tuple)):
        return ArrayValue(values=[from_dynamic(item) for item in value])
    if isinstance(value, Mapping):
        return MapValue(fields={str(key): from_dynamic(item) for key, item in value.items()})
    raise SerializationError(f"Cannot convert value of type {type(value).__name__} to a Firestore value")


def fields_from_dynamic(data: Any) -> WireFields:
    """
    Convert a document body (a dict) into wire fields.

    Raises:
        ValidationError: when the root value is not an object
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Root value must be an object")
    return {str(key): from_dynamic(item) for key, item in data.items()}


def fields_to_dynamic(fields: Mapping[str, WireValue]) -> Dict[str, Any]:
    """Convert wire fields into a plain dict, keeping field order."""
    return {key: to_dynamic(value) for key, value in fields.items()}


# ---------------------------------------------------------------------------
# WireValue <-> wire JSON
# ---------------------------------------------------------------------------

def encode_value(value: WireValue) -> Dict[str, Any]:
    """
    Encode a wire value as the JSON object the REST API expects.

    Args:
        value: The wire value

    Returns:
        A single-key dict such as ``{"stringValue": "x"}``
    """
    if isinstance(value, StringValue):
        return {"stringValue": value.value}
    if isinstance(value, IntegerValue):
        return {"integerValue": value.value}
    if isinstance(value, DoubleValue):
        return {"doubleValue": value.value}
    if isinstance(value, BooleanValue):
        return {"booleanValue": value.value}
    if isinstance(value, TimestampValue):
        return {"timestampValue": value.value}
    if isinstance(value, NullValue):
        return {"nullValue": None}
    if isinstance(value, ArrayValue):
        return {"arrayValue": {"values": [encode_value(item) for item in value.values]}}
    if isinstance(value, MapValue):
        return {"mapValue": {"fields": encode_fields(value.fields)}}
    return {value.tag: value.raw}


def encode_fields(fields: Mapping[str, WireValue]) -> Dict[str, Dict[str, Any]]:
    """Encode a field map for a document body."""
    return {key: encode_value(value) for key, value in fields.items()}


def decode_value(raw: Any) -> WireValue:
    """
    Decode one wire JSON value.

    Empty ``arrayValue``/``mapValue`` objects are accepted (the API omits
    empty ``values``/``fields``), ``integerValue`` may be a JSON number, and
    any tag not modelled here becomes an :class:`UnknownValue`.

    Raises:
        SerializationError: when ``raw`` is not a JSON object or a known tag
            carries a payload of the wrong shape
    """
    if not isinstance(raw, Mapping) or not raw:
        raise SerializationError(f"Invalid Firestore value: {raw!r}")

    try:
        if "stringValue" in raw:
            return StringValue(value=raw["stringValue"])
        if "integerValue" in raw:
            return IntegerValue(value=str(raw["integerValue"]))
        if "doubleValue" in raw:
            return DoubleValue(value=float(raw["doubleValue"]))
        if "booleanValue" in raw:
            return BooleanValue(value=raw["booleanValue"])
        if "timestampValue" in raw:
            return TimestampValue(value=raw["timestampValue"])
        if "nullValue" in raw:
            return NullValue()
        if "arrayValue" in raw:
            items = (raw["arrayValue"] or {}).get("values") or []
            return ArrayValue(values=[decode_value(item) for item in items])
        if "mapValue" in raw:
            return MapValue(fields=decode_fields((raw["mapValue"] or {}).get("fields") or {}))
    except (TypeError, ValueError, AttributeError) as e:
        raise SerializationError(f"Invalid Firestore value {raw!r}: {str(e)}") from e

    tag = next(iter(raw))
    return UnknownValue(tag=tag, raw=raw[tag])


def decode_fields(raw: Any) -> WireFields:
    """
    Decode the ``fields`` object of a document or map value.

    Raises:
        SerializationError: when ``raw`` is not an object or a value is malformed
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise SerializationError(f"Invalid Firestore fields: {raw!r}")
    return {key: decode_value(value) for key, value in raw.items()}


def values_from_dynamic(values: List[Any]) -> List[WireValue]:
    """Convert a list of plain values, passing existing wire values through."""
    return [ensure_wire_value(value) for value in values]


def ensure_wire_value(value: Any) -> WireValue:
    """Return ``value`` unchanged if it already is a wire value, else convert it."""
    if isinstance(value, (StringValue, IntegerValue, DoubleValue, BooleanValue, TimestampValue,
                          NullValue, ArrayValue, MapValue, UnknownValue)):
        return value
    return from_dynamic(value)
