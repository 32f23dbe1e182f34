"""Test configuration and fixtures."""
import json
from typing import Any, Dict, List, Optional, Set

import httpx
import pytest
import pytest_asyncio

from firedocs.config.settings import FirestoreConfig
from firedocs.services.firestore.client import FirestoreClient
from firedocs.services.firestore.values import encode_fields, fields_from_dynamic

PROJECT_ID = "test-project"
API_KEY = "test-key"
DOCUMENTS_MARKER = "/documents"


class FakeFirestore:
    """
    In-memory stand-in for the Firestore REST API, served through httpx.MockTransport.

    Documents are stored as raw wire JSON so tests can seed malformed data.
    """

    def __init__(self, project_id: str = PROJECT_ID, api_key: str = API_KEY):
        self.api_key = api_key
        self.prefix = f"projects/{project_id}/databases/(default)/documents"
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.query_bodies: List[Dict[str, Any]] = []
        self.query_response: Optional[str] = None
        self.fail_status: Optional[int] = None
        self.failing_collections: Set[str] = set()
        self._generated = 0
        self._clock = 0

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def seed(self, collection: str, document_id: str, data: Dict[str, Any]):
        self.seed_raw(collection, document_id, encode_fields(fields_from_dynamic(data)))

    def seed_raw(self, collection: str, document_id: str, fields: Any):
        self.collections.setdefault(collection, {})[document_id] = {
            "fields": fields,
            "updateTime": self._tick(),
        }

    def fields_of(self, collection: str, document_id: str) -> Dict[str, Any]:
        return self.collections[collection][document_id]["fields"]

    # ------------------------------------------------------------------
    # HTTP emulation
    # ------------------------------------------------------------------

    def _tick(self) -> str:
        self._clock += 1
        return f"2024-01-01T00:00:{self._clock:02d}Z"

    def _document_json(self, collection: str, document_id: str) -> Dict[str, Any]:
        stored = self.collections[collection][document_id]
        return {
            "name": f"{self.prefix}/{collection}/{document_id}",
            "fields": stored["fields"],
            "createTime": "2024-01-01T00:00:00Z",
            "updateTime": stored["updateTime"],
        }

    @staticmethod
    def _unquote(field_path: str) -> str:
        if field_path.startswith("`") and field_path.endswith("`"):
            return field_path[1:-1].replace("\\`", "`").replace("\\\\", "\\")
        return field_path

    @staticmethod
    def _error(status: int, message: str) -> httpx.Response:
        return httpx.Response(status, json={"error": {"code": status, "message": message}})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.params.get("key") != self.api_key:
            return self._error(403, "The caller does not have permission")
        if self.fail_status is not None:
            return self._error(self.fail_status, "Injected failure")

        path = request.url.path
        rest = path[path.index(DOCUMENTS_MARKER) + len(DOCUMENTS_MARKER):]

        if rest == ":runQuery":
            return self._run_query(json.loads(request.content))

        parts = [part for part in rest.split("/") if part]
        collection = parts[0]
        document_id = parts[1] if len(parts) > 1 else None
        if collection in self.failing_collections:
            return self._error(500, f"Injected failure for {collection}")
        docs = self.collections.get(collection, {})

        if request.method == "POST" and document_id is None:
            body = json.loads(request.content)
            new_id = request.url.params.get("documentId")
            if new_id is None:
                self._generated += 1
                new_id = f"generated{self._generated}"
            if new_id in docs:
                return self._error(409, f"Document already exists: {new_id}")
            self.seed_raw(collection, new_id, body.get("fields", {}))
            return httpx.Response(200, json=self._document_json(collection, new_id))

        if request.method == "GET" and document_id is None:
            page_size = int(request.url.params.get("pageSize", 20))
            ids = list(docs)[:page_size]
            if not ids:
                return httpx.Response(200, json={})
            return httpx.Response(200, json={"documents": [self._document_json(collection, i) for i in ids]})

        if request.method == "GET":
            if document_id not in docs:
                return self._error(404, f"Document not found: {document_id}")
            return httpx.Response(200, json=self._document_json(collection, document_id))

        if request.method == "PATCH":
            body = json.loads(request.content)
            incoming = body.get("fields", {})
            mask = [self._unquote(path) for path in request.url.params.get_list("updateMask.fieldPaths")]
            if mask:
                merged = dict(docs.get(document_id, {}).get("fields", {}))
                for field_path in mask:
                    if field_path in incoming:
                        merged[field_path] = incoming[field_path]
                    else:
                        merged.pop(field_path, None)
                incoming = merged
            self.seed_raw(collection, document_id, incoming)
            return httpx.Response(200, json=self._document_json(collection, document_id))

        if request.method == "DELETE":
            if document_id not in docs:
                return self._error(404, f"Document not found: {document_id}")
            del docs[document_id]
            return httpx.Response(200, json={})

        return self._error(400, f"Unsupported request {request.method} {path}")

    def _run_query(self, body: Dict[str, Any]) -> httpx.Response:
        self.query_bodies.append(body)
        if self.query_response is not None:
            return httpx.Response(200, text=self.query_response)

        query = body["structuredQuery"]
        collection = query["from"][0]["collectionId"]
        ids = list(self.collections.get(collection, {}))
        if "limit" in query:
            ids = ids[:query["limit"]]
        envelopes = [{"readTime": "2024-01-01T00:00:00Z"}]
        envelopes[:0] = [
            {"document": self._document_json(collection, i), "readTime": "2024-01-01T00:00:00Z"} for i in ids
        ]
        return httpx.Response(200, json=envelopes)


def make_config(api_key: str = API_KEY) -> FirestoreConfig:
    return FirestoreConfig(project_id=PROJECT_ID, api_key=api_key, base_url="https://firestore.test/v1")


def make_client(store: FakeFirestore, api_key: str = API_KEY) -> FirestoreClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(store.handler))
    return FirestoreClient(make_config(api_key), http_client=http_client)


@pytest.fixture
def store():
    """An empty in-memory Firestore."""
    return FakeFirestore()


@pytest.fixture
def config():
    return make_config()


@pytest_asyncio.fixture
async def client(store):
    """A FirestoreClient talking to the in-memory store."""
    firestore_client = make_client(store)
    yield firestore_client
    await firestore_client.client.aclose()
