"""JSON helper utilities."""
import json
from datetime import date, datetime

from pydantic import BaseModel

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
from firedocs.services.firestore.values import to_dynamic

_WIRE_TYPES = (StringValue, IntegerValue, DoubleValue, BooleanValue, TimestampValue,
               NullValue, ArrayValue, MapValue, UnknownValue)


class FiredocsEncoder(json.JSONEncoder):
    """JSON encoder that handles wire values, pydantic models and datetimes."""
    def default(self, obj):
        if isinstance(obj, _WIRE_TYPES):
            return to_dynamic(obj)
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json", by_alias=True)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def dumps_pretty(data) -> str:
    return json.dumps(data, cls=FiredocsEncoder, indent=2, ensure_ascii=False)


def format_display_value(value, max_length: int = 60) -> str:
    """
    Render a plain value for a table cell.

    Strings are shown as-is, containers as compact JSON, long text is cut
    with an ellipsis.
    """
    if value is None:
        text = "null"
    elif isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, (list, dict)):
        text = json.dumps(value, cls=FiredocsEncoder, ensure_ascii=False)
    else:
        text = str(value)
    if len(text) > max_length:
        text = text[:max_length - 3] + "..."
    return text
