"""Firestore document envelopes and data export file schemas."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from firedocs.schemas.wire import WireFields
from firedocs.services.firestore.values import decode_fields, encode_fields


class Document(BaseModel):
    """A document as returned by the REST API."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Full resource path ending in the document id")
    fields: WireFields = Field(default_factory=dict)
    create_time: Optional[str] = Field(None, alias="createTime")
    update_time: Optional[str] = Field(None, alias="updateTime")

    @field_validator("fields", mode="before")
    @classmethod
    def _decode_wire_fields(cls, value: Any) -> Any:
        # Raw wire JSON ({"age": {"integerValue": "3"}}) is decoded here;
        # already-typed values pass straight through.
        if isinstance(value, dict) and all(isinstance(v, dict) for v in value.values()):
            return decode_fields(value)
        return value

    @property
    def document_id(self) -> str:
        return self.name.rstrip("/").split("/")[-1]

    def to_wire_json(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": self.name, "fields": encode_fields(self.fields)}
        if self.create_time:
            body["createTime"] = self.create_time
        if self.update_time:
            body["updateTime"] = self.update_time
        return body


class ListDocumentsResponse(BaseModel):
    """Response of ``GET .../documents/{collection}``."""

    model_config = ConfigDict(populate_by_name=True)

    documents: List[Dict[str, Any]] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class RunQueryResponse(BaseModel):
    """One envelope of a ``runQuery`` response; without ``document`` it is progress only."""

    model_config = ConfigDict(populate_by_name=True)

    document: Optional[Document] = None
    read_time: Optional[str] = Field(None, alias="readTime")
    skipped_results: Optional[int] = Field(None, alias="skippedResults")


class DataExport(BaseModel):
    """The data export file: ``{collection, exported_at, count, data}``."""

    collection: str
    exported_at: str
    count: int
    data: List[Any] = Field(default_factory=list)
