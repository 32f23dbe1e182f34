"""Declared collection definitions and the schema file format."""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from firedocs.schemas.wire import WireValue


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    MAP = "map"
    ARRAY = "array"
    REFERENCE = "reference"


class IndexOrder(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class RuleType(str, Enum):
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    MIN = "min"
    MAX = "max"
    REGEX = "regex"
    EMAIL = "email"
    URL = "url"
    CUSTOM = "custom"


class FieldDefinition(BaseModel):
    name: str
    field_type: FieldType
    required: bool = False
    default_value: Optional[WireValue] = None
    description: Optional[str] = None


class IndexField(BaseModel):
    field_path: str
    order: IndexOrder = IndexOrder.ASCENDING


class Index(BaseModel):
    fields: List[IndexField]
    unique: bool = False
    description: Optional[str] = None


class ValidationRule(BaseModel):
    """
    A rule applied to one field.

    ``value`` is the rule argument: a length for MIN_LENGTH/MAX_LENGTH, a
    bound for MIN/MAX, a pattern for REGEX, an expression for CUSTOM and
    unused for EMAIL/URL.
    """
    field: str
    rule_type: RuleType
    value: Any = None
    description: Optional[str] = None


class Collection(BaseModel):
    """A collection definition registered with the schema manager."""
    name: str
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    indexes: List[Index] = Field(default_factory=list)
    validation_rules: List[ValidationRule] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Schema file format
# ---------------------------------------------------------------------------

class SchemaFileField(BaseModel):
    name: str
    field_type: str
    required: bool = False
    default_value: Optional[Any] = None
    description: Optional[str] = None


class SchemaFileIndexField(BaseModel):
    field_path: str
    order: str = "asc"


class SchemaFileIndex(BaseModel):
    fields: List[SchemaFileIndexField] = Field(default_factory=list)
    unique: bool = False
    description: Optional[str] = None


class SchemaFileRule(BaseModel):
    field: str
    rule_type: str
    value: Optional[Any] = None
    description: Optional[str] = None


class SchemaFileCollection(BaseModel):
    name: str
    description: Optional[str] = None
    fields: List[SchemaFileField] = Field(default_factory=list)
    indexes: List[SchemaFileIndex] = Field(default_factory=list)
    validation_rules: List[SchemaFileRule] = Field(default_factory=list)


class SchemaFile(BaseModel):
    """``{version, collections: {name: collection}}``"""
    version: str = "1.0.0"
    collections: Dict[str, SchemaFileCollection] = Field(default_factory=dict)
