"""Tests for wire value conversion."""
import pytest

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
)
from firedocs.services.firestore.values import (
    decode_fields,
    decode_value,
    encode_value,
    fields_from_dynamic,
    from_dynamic,
    to_dynamic,
    wire_type_name,
)


def test_from_dynamic_maps_each_python_type():
    assert from_dynamic("alice") == StringValue(value="alice")
    assert from_dynamic(30) == IntegerValue(value="30")
    assert from_dynamic(2.5) == DoubleValue(value=2.5)
    assert from_dynamic(True) == BooleanValue(value=True)
    assert from_dynamic(None) == NullValue()


def test_bool_is_not_treated_as_integer():
    assert isinstance(from_dynamic(False), BooleanValue)


def test_nested_document_round_trips():
    data = {
        "name": "alice",
        "age": 30,
        "score": 9.5,
        "active": True,
        "tags": ["a", "b"],
        "profile": {"city": "Paris", "zip": None},
    }
    assert {key: to_dynamic(value) for key, value in fields_from_dynamic(data).items()} == data


def test_integer_outside_64_bits_raises():
    with pytest.raises(SerializationError):
        from_dynamic(2 ** 63)
    assert from_dynamic(2 ** 63 - 1) == IntegerValue(value=str(2 ** 63 - 1))


def test_unsupported_python_type_raises():
    with pytest.raises(SerializationError):
        from_dynamic(object())


def test_fields_from_dynamic_requires_object_root():
    with pytest.raises(ValidationError, match="Root value must be an object"):
        fields_from_dynamic([1, 2])


def test_unparsable_integer_string_is_kept_as_text():
    assert to_dynamic(IntegerValue(value="12abc")) == "12abc"


def test_unknown_tag_becomes_placeholder():
    value = decode_value({"geoPointValue": {"latitude": 1.0, "longitude": 2.0}})
    assert isinstance(value, UnknownValue)
    assert value.tag == "geoPointValue"
    assert wire_type_name(value) == "geoPointValue"
    assert to_dynamic(value) == "<unsupported:geoPointValue>"
    assert encode_value(value) == {"geoPointValue": {"latitude": 1.0, "longitude": 2.0}}


def test_decode_is_tolerant_of_api_shapes():
    assert decode_value({"integerValue": 42}) == IntegerValue(value="42")
    assert decode_value({"arrayValue": {}}) == ArrayValue(values=[])
    assert decode_value({"mapValue": {}}) == MapValue(fields={})
    assert decode_value({"nullValue": None}) == NullValue()
    assert decode_value({"timestampValue": "2024-01-01T00:00:00Z"}) == TimestampValue(value="2024-01-01T00:00:00Z")


def test_decode_rejects_non_objects():
    with pytest.raises(SerializationError):
        decode_value("stringValue")
    with pytest.raises(SerializationError):
        decode_value({})
    with pytest.raises(SerializationError):
        decode_fields(["not", "a", "map"])


def test_encode_produces_single_tag_objects():
    encoded = encode_value(from_dynamic({"tags": ["x"], "n": 1}))
    assert encoded == {
        "mapValue": {
            "fields": {
                "tags": {"arrayValue": {"values": [{"stringValue": "x"}]}},
                "n": {"integerValue": "1"},
            }
        }
    }
    assert encode_value(NullValue()) == {"nullValue": None}


def test_map_equality_ignores_key_order():
    assert from_dynamic({"a": 1, "b": 2}) == from_dynamic({"b": 2, "a": 1})
