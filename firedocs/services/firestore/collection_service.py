"""Firestore collection discovery and schema service."""
import asyncio
import json
import logging
from typing import Dict, List, Optional, Sequence

from firedocs.config.settings import (
    FIRESTORE_CANDIDATE_COLLECTIONS,
    FIRESTORE_PARALLEL_DISCOVERY,
    FIRESTORE_SCHEMA_SAMPLE_SIZE,
    METADATA_COLLECTION,
)
from firedocs.exceptions import FiredocsError, NotFoundError
from firedocs.schemas.collections import CollectionInfo, CollectionSchema, FieldInfo
from firedocs.schemas.documents import Document
from firedocs.schemas.wire import WireValue
from firedocs.services.firestore.client import FirestoreClient
from firedocs.services.firestore.field_analyser import detect_auto_field
from firedocs.services.firestore.values import fields_to_dynamic, to_dynamic, wire_type_name

logger = logging.getLogger(__name__)

MAX_SAMPLE_VALUES = 5
AVERAGE_DOCUMENT_BYTES = 2048


def describe_value(value: WireValue) -> str:
    """
    Render a short display string for a sampled value.

    Args:
        value: The wire value

    Returns:
        Strings quoted, scalars as-is, containers summarised
    """
    kind = value.kind
    if kind == "string":
        return f'"{value.value}"'
    if kind == "array":
        return "[...]"
    if kind == "map":
        return "{...}"
    if kind == "null":
        return "null"
    if kind == "unknown":
        return "?"
    return json.dumps(to_dynamic(value))


def format_size_estimate(document_count: int) -> str:
    """Rough storage estimate assuming about 2KB per document."""
    if document_count == 0:
        return "Empty"
    size = float(document_count * AVERAGE_DOCUMENT_BYTES)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}GB"


class _FieldStats:
    """Running statistics for one field while scanning a sample."""

    def __init__(self):
        self.frequency = 0
        self.field_types: List[str] = []
        self.sample_values: List[str] = []

    def observe(self, value: WireValue):
        self.frequency += 1
        field_type = wire_type_name(value)
        if field_type not in self.field_types:
            self.field_types.append(field_type)
        sample = describe_value(value)
        if len(self.sample_values) < MAX_SAMPLE_VALUES and sample not in self.sample_values:
            self.sample_values.append(sample)

    @property
    def field_type(self) -> str:
        if len(self.field_types) == 1:
            return self.field_types[0]
        return f"Mixed({', '.join(sorted(self.field_types))})"


def infer_collection_schema(collection_name: str, documents: Sequence[Document]) -> CollectionSchema:
    """
    Infer the schema of a collection from sampled documents.

    A field is required when it appears in every sampled document. A field
    seen with more than one type gets a ``Mixed(...)`` label.

    Args:
        collection_name: Name of the sampled collection
        documents: The sample

    Returns:
        CollectionSchema with fields in first-seen order
    """
    field_stats: Dict[str, _FieldStats] = {}

    for doc in documents:
        for field_name, value in doc.fields.items():
            field_stats.setdefault(field_name, _FieldStats()).observe(value)

    total = len(documents)
    fields = []
    for name, stats in field_stats.items():
        field_type = stats.field_type
        fields.append(FieldInfo(
            name=name,
            field_type=field_type,
            is_required=stats.frequency == total,
            frequency=stats.frequency,
            sample_values=stats.sample_values,
            unique_values=len(stats.sample_values),
            auto_field=detect_auto_field(name, field_type),
        ))

    return CollectionSchema(
        collection_name=collection_name,
        total_documents=total,
        fields=fields,
        sample_document=fields_to_dynamic(documents[0].fields) if documents else None,
    )


class CollectionManager:
    """
    Discovers collections and describes their shape by sampling.

    The REST API has no "list collections" call usable with an API key, so
    discovery probes a list of candidate names. The list is injectable.
    """

    def __init__(
        self,
        client: FirestoreClient,
        candidate_collections: Optional[Sequence[str]] = None,
        parallel: Optional[bool] = None,
    ):
        self.client = client
        self.candidate_collections = list(candidate_collections or FIRESTORE_CANDIDATE_COLLECTIONS)
        self.parallel = FIRESTORE_PARALLEL_DISCOVERY if parallel is None else parallel

    async def _sample(self, collection_name: str, sample_size: int) -> List[Document]:
        raw_documents = await self.client.list_raw_documents(collection_name, sample_size)
        documents = []
        for raw in raw_documents:
            try:
                documents.append(Document.model_validate(raw))
            except (FiredocsError, ValueError) as e:
                logger.warning(f"Skipping undecodable document in '{collection_name}': {e}")
        return documents

    async def describe_collection(self, collection_name: str, sample_size: int = FIRESTORE_SCHEMA_SAMPLE_SIZE) -> CollectionSchema:
        """
        Describe a collection by sampling up to ``sample_size`` documents.

        Raises:
            NotFoundError: when the sample is empty (missing and empty
                collections look the same here)
        """
        documents = await self._sample(collection_name, sample_size)
        if not documents:
            raise NotFoundError(collection_name, message=f"No documents found in collection {collection_name}")

        schema = infer_collection_schema(collection_name, documents)
        logger.info(f"Described '{collection_name}': {len(schema.fields)} field(s) over {schema.total_documents} document(s)")
        return schema

    async def get_collection_info(self, collection_name: str) -> CollectionInfo:
        """
        Summarise a collection: document count (up to one page), size estimate and last update.
        """
        raw_documents = await self.client.list_raw_documents(collection_name, self.client.config.page_size_cap)
        count = len(raw_documents)
        last_modified = None
        if raw_documents:
            last_modified = max((doc.get("updateTime") or "" for doc in raw_documents), default="") or None

        return CollectionInfo(
            name=collection_name,
            document_count=count,
            estimated_size=format_size_estimate(count),
            last_modified=last_modified,
        )

    async def _probe(self, collection_name: str) -> Optional[CollectionInfo]:
        try:
            info = await self.get_collection_info(collection_name)
        except FiredocsError as e:
            logger.debug(f"Probe of '{collection_name}' failed: {e}")
            return None
        return info if info.document_count > 0 else None

    async def list_collections(self) -> List[CollectionInfo]:
        """
        Discover non-empty collections among the candidates and the metadata collection.

        Returns:
            Collections sorted by document count, largest first
        """
        names = list(dict.fromkeys(self.candidate_collections + [METADATA_COLLECTION]))

        if self.parallel:
            probed = await asyncio.gather(*(self._probe(name) for name in names))
        else:
            probed = [await self._probe(name) for name in names]

        collections = [info for info in probed if info is not None]
        collections.sort(key=lambda info: info.document_count, reverse=True)
        logger.info(f"Discovered {len(collections)} collection(s)")
        return collections

