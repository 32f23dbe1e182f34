"""Exit-code constants used by the CLI layer."""
from firedocs.exceptions import FiredocsError

SUCCESS = 0
GENERAL_ERROR = 1
UNEXPECTED_ERROR = 2
NOT_FOUND = 3
VALIDATION_ERROR = 4
CONFIG_ERROR = 5
AUTH_ERROR = 6
TRANSPORT_ERROR = 7
STORE_ERROR = 8
FILE_ERROR = 9
SERIALIZATION_ERROR = 10
# 128 + SIGINT
KEYBOARD_INTERRUPT = 130

_BY_KIND = {
    "not_found": NOT_FOUND,
    "validation": VALIDATION_ERROR,
    "config": CONFIG_ERROR,
    "auth": AUTH_ERROR,
    "transport": TRANSPORT_ERROR,
    "store": STORE_ERROR,
    "io": FILE_ERROR,
    "serialization": SERIALIZATION_ERROR,
    "decode": SERIALIZATION_ERROR,
}


def for_error(exc: FiredocsError) -> int:
    """Exit code for a library error, by its ``kind``."""
    return _BY_KIND.get(exc.kind, GENERAL_ERROR)
