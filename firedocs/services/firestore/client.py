"""Firestore REST client service."""
import json
import re
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from firedocs.config.settings import FirestoreConfig
from firedocs.exceptions import (
    AuthError,
    FiredocsError,
    NotFoundError,
    SerializationError,
    StoreError,
    TransportError,
    ValidationError,
)
from firedocs.schemas.documents import Document, ListDocumentsResponse, RunQueryResponse
from firedocs.schemas.query import StructuredQuery
from firedocs.schemas.wire import TimestampValue, WireFields
from firedocs.services.firestore.codec import FromWire, ToWire, format_timestamp, is_record, utc_now
from firedocs.services.firestore.query_builder import QueryBuilder
from firedocs.services.firestore.values import encode_fields, fields_from_dynamic, fields_to_dynamic

logger = logging.getLogger(__name__)

Payload = Union[ToWire, Dict[str, Any]]

_SIMPLE_FIELD_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def quote_field_name(name: str) -> str:
    """
    Encode a top-level field name as a single field-path segment.

    Names that are not plain identifiers are wrapped in backticks, so
    ``"a.b"`` addresses the field named ``a.b`` rather than ``b`` inside ``a``.
    """
    if _SIMPLE_FIELD_NAME.fullmatch(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


class FirestoreClient:
    """
    Async CRUD driver for the Firestore REST API.

    Each call issues exactly one HTTP request and raises a typed
    :class:`~firedocs.exceptions.FiredocsError` on failure. There is no
    retry logic here; configure it on the injected ``httpx.AsyncClient``
    transport if needed.
    """

    def __init__(self, config: FirestoreConfig, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the client.

        Args:
            config: Project, API key and endpoint settings
            http_client: Optional pre-built client (tests inject a MockTransport)
        """
        self.config = config
        self.base_url = config.documents_url
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=config.timeout)

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "FirestoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def query_builder(collection: str) -> QueryBuilder:
        return QueryBuilder(collection)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _collection_url(self, collection: str) -> str:
        return f"{self.base_url}/{collection.strip('/')}"

    def _document_url(self, collection: str, document_id: str) -> str:
        return f"{self._collection_url(collection)}/{document_id}"

    def _params(self, extra: Optional[List[Tuple[str, Any]]] = None) -> List[Tuple[str, Any]]:
        params: List[Tuple[str, Any]] = [("key", self.config.api_key)]
        if extra:
            params.extend(extra)
        return params

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        params: Optional[List[Tuple[str, Any]]] = None,
        body: Optional[Dict[str, Any]] = None,
        not_found: Optional[str] = None,
    ) -> httpx.Response:
        """
        Send one request and map failures onto the error taxonomy.

        Args:
            method: HTTP verb
            url: Target URL without query string
            action: Short description used in error messages ("Create", "Get", ...)
            params: Extra query parameters (repeated keys allowed)
            body: JSON body
            not_found: Identifier reported when the store answers 404; when
                ``None`` a 404 is treated like any other failure

        Returns:
            The successful response
        """
        logger.debug(f"{method} {url}")
        try:
            response = await self.client.request(method, url, params=self._params(params), json=body)
        except httpx.HTTPError as e:
            logger.error(f"{action} request failed: {str(e)}", exc_info=True)
            raise TransportError(f"HTTP request failed: {str(e)}") from e

        if response.status_code == 404 and not_found is not None:
            raise NotFoundError(not_found, message=f"{not_found} not found")
        if response.status_code in (401, 403):
            raise AuthError(f"{action} rejected ({response.status_code}): {response.text}",
                            hint="Check FIREBASE_API_KEY and the project's security rules.")
        if not response.is_success:
            raise StoreError(f"{action} failed: {response.text or 'Unknown error'}", status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SerializationError(f"Store returned invalid JSON: {str(e)}") from e

    @staticmethod
    def _parse_document(raw: Any) -> Document:
        try:
            return Document.model_validate(raw)
        except PydanticValidationError as e:
            raise SerializationError(f"Malformed document: {str(e)}") from e

    @staticmethod
    def _to_fields(data: Payload) -> WireFields:
        if is_record(data):
            return dict(data.to_wire())
        return fields_from_dynamic(data)

    @staticmethod
    def _from_fields(fields: WireFields, model: Optional[Type[FromWire]]) -> Any:
        if model is None:
            return fields_to_dynamic(fields)
        return model.from_wire(fields)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_document(self, collection: str, data: Payload, document_id: Optional[str] = None) -> str:
        """
        Create a document.

        Args:
            collection: Collection path, e.g. ``"users"`` or ``"/users"``
            data: A typed record (``to_wire``) or a dict
            document_id: Optional id; the store generates one when omitted

        Returns:
            The id of the created document
        """
        fields = self._to_fields(data)
        extra = [("documentId", document_id)] if document_id else None
        response = await self._request(
            "POST", self._collection_url(collection), "Create",
            params=extra, body={"fields": encode_fields(fields)},
        )
        document = self._parse_document(self._json(response))
        logger.info(f"Created document {document.document_id} in '{collection}'")
        return document.document_id

    async def get_document(self, collection: str, document_id: str, model: Optional[Type[FromWire]] = None) -> Any:
        """
        Fetch one document.

        Args:
            collection: Collection path
            document_id: Document id
            model: Typed record class to decode into; a dict is returned when omitted

        Raises:
            NotFoundError: when the document does not exist
        """
        response = await self._request(
            "GET", self._document_url(collection, document_id), "Get",
            not_found=f"Document '{document_id}' in collection '{collection}'",
        )
        document = self._parse_document(self._json(response))
        return self._from_fields(document.fields, model)

    async def update_document(self, collection: str, document_id: str, data: Payload, merge: bool = True) -> None:
        """
        Update a document.

        With ``merge=True`` an update mask listing the payload's top-level
        fields is sent, so other stored fields are kept. With ``merge=False``
        no mask is sent and the store replaces the whole document.

        Typed records always get ``updated_at`` stamped with the current time.

        Field names are sent in the mask as single path segments, so a
        top-level key such as ``"a.b"`` is never read as a nested path.

        Raises:
            ValidationError: when a merge update carries no fields; without a
                mask the store would replace the document with nothing
            NotFoundError: when the store reports the document missing
        """
        fields = self._to_fields(data)
        if is_record(data):
            fields["updated_at"] = TimestampValue(value=format_timestamp(utc_now()))

        if merge and not fields:
            raise ValidationError("Nothing to update")

        extra = [("updateMask.fieldPaths", quote_field_name(name)) for name in fields] if merge else None
        await self._request(
            "PATCH", self._document_url(collection, document_id), "Update",
            params=extra, body={"fields": encode_fields(fields)},
            not_found=f"Document '{document_id}' in collection '{collection}'",
        )
        logger.info(f"Updated document {document_id} in '{collection}' (merge: {merge})")

    async def delete_document(self, collection: str, document_id: str) -> None:
        """
        Delete a document.

        Raises:
            NotFoundError: when the document does not exist; callers wanting
                idempotent deletes should catch it
        """
        await self._request(
            "DELETE", self._document_url(collection, document_id), "Delete",
            not_found=f"Document '{document_id}' in collection '{collection}'",
        )
        logger.info(f"Deleted document {document_id} from '{collection}'")

    async def list_raw_documents(self, collection: str, page_size: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch a single page of raw document envelopes.

        Args:
            collection: Collection path
            page_size: Requested page size, capped at the store limit

        Returns:
            The ``documents`` array as returned by the store (possibly empty)
        """
        extra = None
        if page_size is not None:
            extra = [("pageSize", min(page_size, self.config.page_size_cap))]
        response = await self._request(
            "GET", self._collection_url(collection), "List",
            params=extra, not_found=f"Collection '{collection}'",
        )
        try:
            listing = ListDocumentsResponse.model_validate(self._json(response))
        except PydanticValidationError as e:
            raise SerializationError(f"Malformed document listing: {str(e)}") from e
        return listing.documents

    async def list_document_entries(
        self,
        collection: str,
        limit: Optional[int] = None,
        model: Optional[Type[FromWire]] = None,
    ) -> List[Tuple[str, Any]]:
        """
        List one page of documents as ``(document_id, payload)`` pairs.

        Documents that fail to decode are logged and skipped; the rest of
        the page is still returned.
        """
        raw_documents = await self.list_raw_documents(collection, limit)

        entries: List[Tuple[str, Any]] = []
        skipped = 0
        for raw in raw_documents:
            try:
                document = self._parse_document(raw)
                entries.append((document.document_id, self._from_fields(document.fields, model)))
            except FiredocsError as e:
                skipped += 1
                logger.warning(f"Failed to parse document {raw.get('name', '?')}: {e}")

        if limit is not None:
            entries = entries[:limit]
        if skipped:
            logger.warning(f"Skipped {skipped} undecodable document(s) in '{collection}'")
        return entries

    async def list_documents(
        self,
        collection: str,
        limit: Optional[int] = None,
        model: Optional[Type[FromWire]] = None,
    ) -> List[Any]:
        """List one page of documents as dicts or typed records; see :meth:`list_document_entries`."""
        return [payload for _, payload in await self.list_document_entries(collection, limit, model)]

    async def run_query(self, query: StructuredQuery, model: Optional[Type[FromWire]] = None) -> List[Any]:
        """
        Run a structured query.

        The response is a stream of envelopes. Blank or unparsable lines and
        envelopes without a document (progress heartbeats) are skipped;
        documents that fail to decode are logged and skipped.
        """
        response = await self._request(
            "POST", f"{self.base_url}:runQuery", "Query",
            body={"structuredQuery": query.to_wire_json()},
        )

        results: List[Any] = []
        for envelope in _iter_envelopes(response.text):
            try:
                parsed = RunQueryResponse.model_validate(envelope)
            except (PydanticValidationError, FiredocsError) as e:
                logger.warning(f"Skipping malformed query result: {e}")
                continue
            if parsed.document is None:
                continue
            try:
                results.append(self._from_fields(parsed.document.fields, model))
            except FiredocsError as e:
                logger.warning(f"Failed to parse document {parsed.document.name}: {e}")

        logger.info(f"Query on '{query.collection_id}' returned {len(results)} document(s)")
        return results


def _iter_envelopes(text: str):
    """
    Yield JSON envelopes from a ``runQuery`` body.

    The body is either newline-delimited JSON objects or a single JSON array
    of them. Lines that are blank or do not parse are skipped.
    """
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            items = json.loads(stripped)
        except ValueError:
            items = None
        if isinstance(items, list):
            for item in items:
                if isinstance(item, dict):
                    yield item
            return

    for line in text.splitlines():
        line = line.strip().rstrip(",")
        if not line or line in ("[", "]"):
            continue
        try:
            item = json.loads(line)
        except ValueError:
            logger.debug(f"Skipping unparsable query line: {line[:80]}")
            continue
        if isinstance(item, dict):
            yield item
