"""
Field analyzer for Firestore collections.
"""
import logging
import re
from typing import List, Optional

from firedocs.schemas.collections import AutoFieldType

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r'^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$'
URL_PATTERN = r'^https?://(?:[-\w.]|(?:%[\da-fA-F]{2}))+(:\d+)?(/[-\w%!$&\'()*+,;=:.~@]*)*(\?[^\s#]*)?(#\S*)?$'

# Name patterns for fields the form fills in by itself. Checked in order.
_AUTO_FIELD_PATTERNS = [
    (AutoFieldType.CREATED_AT, re.compile(r'^(created(_?at|_?on|_?time|_?date)?|date_?created|creation_?(time|date))$', re.I)),
    (AutoFieldType.UPDATED_AT, re.compile(r'^((updated|modified)(_?at|_?on|_?time|_?date)?|last_?(modified|updated)|date_?modified)$', re.I)),
    (AutoFieldType.USER_ID, re.compile(r'^(user_?id|(created|updated|modified)_?by|owner_?id)$', re.I)),
    (AutoFieldType.SEQUENCE_NUMBER, re.compile(r'^(seq|sequence(_?(no|num|number))?|serial(_?(no|num|number))?|counter)$', re.I)),
    (AutoFieldType.RANDOM_UUID, re.compile(r'^(_?id|uuid|guid|[a-z]+_uuid)$', re.I)),
]

# Types an auto field may be stored as
_AUTO_FIELD_TYPES = {
    AutoFieldType.CREATED_AT: {"timestamp", "string"},
    AutoFieldType.UPDATED_AT: {"timestamp", "string"},
    AutoFieldType.USER_ID: {"string"},
    AutoFieldType.SEQUENCE_NUMBER: {"integer"},
    AutoFieldType.RANDOM_UUID: {"string"},
}


def detect_auto_field(field_name: str, field_type: str) -> Optional[AutoFieldType]:
    """
    Decide whether a field is one the form layer should generate.

    Detection is name based and advisory: an explicit value supplied by the
    caller always wins over a generated one.

    Args:
        field_name: Field name as stored
        field_type: Inferred type label ("Mixed(...)" never matches)

    Returns:
        The auto field kind, or None
    """
    for auto_type, pattern in _AUTO_FIELD_PATTERNS:
        if pattern.match(field_name):
            if field_type in _AUTO_FIELD_TYPES[auto_type]:
                return auto_type
            logger.debug(f"Field '{field_name}' looks like {auto_type.value} but has type {field_type}")
            return None
    return None


def identify_string_pattern(values: List[str]) -> Optional[str]:
    """
    Try to identify a common pattern in string values.

    Args:
        values: List of string values

    Returns:
        Pattern description or None
    """
    if not values:
        return None

    if all(re.match(EMAIL_PATTERN, v) for v in values):
        return "email"

    if all(re.match(URL_PATTERN, v) for v in values):
        return "url"

    # Check for date pattern (simple)
    date_pattern = r'^\d{4}-\d{2}-\d{2}$'
    if all(re.match(date_pattern, v) for v in values):
        return "date (YYYY-MM-DD)"

    # Check for phone number pattern (simple)
    phone_pattern = r'^\+?[\d\s-]{7,15}$'
    if all(re.match(phone_pattern, v) for v in values):
        return "phone number"

    return None


def is_valid_email(value: str) -> bool:
    return re.match(EMAIL_PATTERN, value) is not None


def is_valid_url(value: str) -> bool:
    return re.match(URL_PATTERN, value) is not None
