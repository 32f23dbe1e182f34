"""Typed record codec for Firestore documents.

A record class opts in by implementing :class:`ToWire` (instance method
``to_wire``) and :class:`FromWire` (classmethod ``from_wire``). The reader
helpers below give every record the same behaviour for missing or
malformed fields.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol, Type, TypeVar, runtime_checkable

from firedocs.exceptions import DecodeError
from firedocs.schemas.wire import IntegerValue, StringValue, TimestampValue, WireFields, WireValue

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="FromWire")


@runtime_checkable
class ToWire(Protocol):
    """A record that knows which document fields it serializes to."""

    def to_wire(self) -> WireFields:
        ...


@runtime_checkable
class FromWire(Protocol):
    """A record that can be rebuilt from document fields."""

    @classmethod
    def from_wire(cls: Type[T], fields: Mapping[str, WireValue]) -> T:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC3339 with an explicit UTC offset."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp as sent by Firestore.

    Raises:
        ValueError: when the text is not a valid timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # Firestore sends up to nanosecond precision; datetime keeps microseconds
    if "." in text:
        head, _, rest = text.partition(".")
        digits = len(rest) - len(rest.lstrip("0123456789"))
        fraction, offset = rest[:digits], rest[digits:]
        text = f"{head}.{fraction[:6].ljust(6, '0')}{offset}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def read_string(fields: Mapping[str, WireValue], name: str) -> str:
    """
    Read a mandatory string field.

    Raises:
        DecodeError: when the field is absent or not a string value
    """
    value = fields.get(name)
    if not isinstance(value, StringValue):
        raise DecodeError(name)
    return value.value


def read_optional_string(fields: Mapping[str, WireValue], name: str) -> Optional[str]:
    """Read an optional string field; anything but a string value yields ``None``."""
    value = fields.get(name)
    if isinstance(value, StringValue):
        return value.value
    return None


def read_integer(fields: Mapping[str, WireValue], name: str, default: int = 0) -> int:
    """
    Read an integer field, falling back to ``default``.

    The fallback is logged so that a defaulted value can be told apart from
    a stored one when debugging.
    """
    value = fields.get(name)
    if isinstance(value, IntegerValue):
        try:
            return int(value.value)
        except ValueError:
            logger.warning(f"Field '{name}' holds non-numeric integer {value.value!r}, using {default}")
            return default
    logger.warning(f"Field '{name}' missing or not an integer, using {default}")
    return default


def read_timestamp(fields: Mapping[str, WireValue], name: str, default: Optional[datetime] = None) -> datetime:
    """Read a timestamp field, falling back to ``default`` or the current UTC time."""
    value = fields.get(name)
    if isinstance(value, TimestampValue):
        try:
            return parse_timestamp(value.value)
        except ValueError:
            logger.warning(f"Field '{name}' holds invalid timestamp {value.value!r}")
    return default if default is not None else utc_now()


def is_record(data: Any) -> bool:
    """Whether ``data`` should go through the typed-record path."""
    return isinstance(data, ToWire) and not isinstance(data, Mapping)
