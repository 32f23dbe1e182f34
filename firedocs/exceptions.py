"""Exception hierarchy for firedocs.

Every failure that leaves the library is a subclass of
:class:`FiredocsError`. Each class carries a stable ``kind`` string so the
CLI can branch on the failure (for example "not found" versus everything
else) without matching on message text.

Hierarchy
---------
FiredocsError
├── TransportError
├── SerializationError
│   └── DecodeError
├── FileAccessError
├── NotFoundError
├── AuthError
├── ConfigError
├── StoreError
└── ValidationError
"""
from typing import Optional


class FiredocsError(Exception):
    """Base exception for all firedocs errors."""

    kind = "error"

    def __init__(self, message: str, *, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint: Optional[str] = hint


class TransportError(FiredocsError):
    """Raised when the HTTP request itself fails (DNS, connect, timeout)."""

    kind = "transport"


class SerializationError(FiredocsError):
    """Raised when a value cannot be encoded to or decoded from the wire format."""

    kind = "serialization"


class DecodeError(SerializationError):
    """Raised when a typed record cannot be built from document fields."""

    kind = "decode"

    def __init__(self, field: str, *, hint: Optional[str] = None) -> None:
        super().__init__(f"Missing field: {field}", hint=hint)
        self.field = field


class FileAccessError(FiredocsError):
    """Raised when a schema or data file cannot be read or written."""

    kind = "io"


class NotFoundError(FiredocsError):
    """Raised when a document or collection does not exist."""

    kind = "not_found"

    def __init__(self, identifier: str, *, message: Optional[str] = None, hint: Optional[str] = None) -> None:
        super().__init__(message or f"Not found: {identifier}", hint=hint)
        self.identifier = identifier


class AuthError(FiredocsError):
    """Raised when the store rejects the API key (401/403)."""

    kind = "auth"


class ConfigError(FiredocsError):
    """Raised for missing or invalid configuration, including schema definitions."""

    kind = "config"


class StoreError(FiredocsError):
    """Raised on a non-2xx store response. The message carries the response body."""

    kind = "store"

    def __init__(self, message: str, *, status_code: Optional[int] = None, hint: Optional[str] = None) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code


class ValidationError(FiredocsError):
    """Raised when a value violates a schema or field rule."""

    kind = "validation"
