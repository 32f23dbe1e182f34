"""Collection discovery and inferred schema models."""
import random
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from firedocs.services.firestore.codec import format_timestamp, utc_now


class AutoFieldType(str, Enum):
    """Kinds of field the data-entry form fills in instead of asking the user."""

    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    RANDOM_UUID = "random_uuid"
    SEQUENCE_NUMBER = "sequence_number"
    RANDOM_NUMBER = "random_number"
    USER_ID = "user_id"

    def description(self) -> str:
        return {
            AutoFieldType.CREATED_AT: "Creation timestamp",
            AutoFieldType.UPDATED_AT: "Last update timestamp",
            AutoFieldType.RANDOM_UUID: "Random UUID",
            AutoFieldType.SEQUENCE_NUMBER: "Sequence number",
            AutoFieldType.RANDOM_NUMBER: "Random number",
            AutoFieldType.USER_ID: "Current user id",
        }[self]

    def generate_value(self, user_id: str = "system-user") -> Any:
        """Produce a fresh value for this kind of field."""
        if self in (AutoFieldType.CREATED_AT, AutoFieldType.UPDATED_AT):
            return format_timestamp(utc_now())
        if self is AutoFieldType.RANDOM_UUID:
            return str(uuid.uuid4())
        if self is AutoFieldType.SEQUENCE_NUMBER:
            return int(utc_now().timestamp() * 1000)
        if self is AutoFieldType.RANDOM_NUMBER:
            return random.randint(1, 1_000_000)
        return user_id


class CollectionInfo(BaseModel):
    """Summary of a discovered collection."""
    name: str
    document_count: int
    estimated_size: str
    last_modified: Optional[str] = None


class FieldInfo(BaseModel):
    """What sampling found out about one top-level field."""
    name: str
    field_type: str = Field(..., description='Observed type, or "Mixed(a, b)" when inconsistent')
    is_required: bool = Field(..., description="Present in every sampled document")
    frequency: int = Field(..., description="Number of sampled documents containing the field")
    sample_values: List[str] = Field(default_factory=list, description="Up to 5 distinct display values")
    unique_values: int = 0
    auto_field: Optional[AutoFieldType] = None


class CollectionSchema(BaseModel):
    """Schema of a collection inferred from a document sample."""
    collection_name: str
    total_documents: int
    fields: List[FieldInfo] = Field(default_factory=list)
    sample_document: Optional[Dict[str, Any]] = None

    def get_field(self, name: str) -> Optional[FieldInfo]:
        return next((field for field in self.fields if field.name == name), None)
