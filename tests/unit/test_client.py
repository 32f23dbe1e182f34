"""Tests for the Firestore REST client."""
import httpx
import pytest

from conftest import FakeFirestore, make_client
from firedocs.config.settings import FirestoreConfig
from firedocs.exceptions import (
    AuthError,
    ConfigError,
    NotFoundError,
    SerializationError,
    StoreError,
    TransportError,
    ValidationError,
)
from firedocs.schemas.user import User
from firedocs.services.firestore.client import FirestoreClient, quote_field_name


@pytest.mark.asyncio
async def test_create_then_get_returns_same_data(client, store):
    document_id = await client.create_document("users", {"name": "Alice", "age": 30, "tags": ["a"]}, "alice")

    assert document_id == "alice"
    assert store.requests[-1].url.params.get("documentId") == "alice"
    assert await client.get_document("users", "alice") == {"name": "Alice", "age": 30, "tags": ["a"]}


@pytest.mark.asyncio
async def test_create_without_id_uses_generated_id(client, store):
    document_id = await client.create_document("/users", {"name": "Bob"})

    assert document_id == "generated1"
    assert "generated1" in store.collections["users"]


@pytest.mark.asyncio
async def test_every_request_carries_api_key(client, store):
    await client.create_document("users", {"name": "Carol"})
    await client.list_documents("users")

    assert all(request.url.params.get("key") == "test-key" for request in store.requests)


@pytest.mark.asyncio
async def test_typed_record_round_trip(client):
    user = User(name="Dana", email="dana@example.com", age=41)
    document_id = await client.create_document("users", user)

    fetched = await client.get_document("users", document_id, model=User)

    assert isinstance(fetched, User)
    assert (fetched.name, fetched.email, fetched.age) == ("Dana", "dana@example.com", 41)


@pytest.mark.asyncio
async def test_merge_update_keeps_other_fields(client, store):
    store.seed("users", "u1", {"name": "Eve", "age": 20, "city": "Oslo"})

    await client.update_document("users", "u1", {"age": 21}, merge=True)

    assert store.requests[-1].url.params.get_list("updateMask.fieldPaths") == ["age"]
    assert await client.get_document("users", "u1") == {"name": "Eve", "age": 21, "city": "Oslo"}


@pytest.mark.asyncio
async def test_replace_update_drops_other_fields(client, store):
    store.seed("users", "u1", {"name": "Eve", "age": 20, "city": "Oslo"})

    await client.update_document("users", "u1", {"age": 21}, merge=False)

    assert "updateMask.fieldPaths" not in store.requests[-1].url.params
    assert await client.get_document("users", "u1") == {"age": 21}


@pytest.mark.asyncio
async def test_empty_merge_update_is_rejected_and_keeps_document(client, store):
    store.seed("users", "u1", {"name": "Eve", "age": 20})
    sent = len(store.requests)

    with pytest.raises(ValidationError, match="Nothing to update"):
        await client.update_document("users", "u1", {}, merge=True)

    assert len(store.requests) == sent
    assert await client.get_document("users", "u1") == {"name": "Eve", "age": 20}


@pytest.mark.asyncio
async def test_merge_mask_quotes_non_identifier_names(client, store):
    store.seed("users", "u1", {"name": "Eve", "a": {"b": 1}})

    await client.update_document("users", "u1", {"a.b": 2, "first-name": "Eve", "plain_name": 1}, merge=True)

    assert store.requests[-1].url.params.get_list("updateMask.fieldPaths") == [
        "`a.b`", "`first-name`", "plain_name",
    ]
    stored = await client.get_document("users", "u1")
    assert stored["a"] == {"b": 1}
    assert stored["a.b"] == 2


@pytest.mark.parametrize("name, quoted", [
    ("age", "age"),
    ("_private1", "_private1"),
    ("1st", "`1st`"),
    ("tick`name", "`tick\\`name`"),
    ("back\\slash", "`back\\\\slash`"),
])
def test_quote_field_name(name, quoted):
    assert quote_field_name(name) == quoted


@pytest.mark.asyncio
async def test_typed_update_stamps_updated_at(client, store):
    store.seed("users", "u1", {"name": "Old", "email": "old@example.com", "age": 1})

    await client.update_document("users", "u1", User(name="New", email="new@example.com", age=2))

    mask = store.requests[-1].url.params.get_list("updateMask.fieldPaths")
    assert "updated_at" in mask
    assert "timestampValue" in store.fields_of("users", "u1")["updated_at"]


@pytest.mark.asyncio
async def test_get_missing_document_raises_not_found(client):
    with pytest.raises(NotFoundError) as exc_info:
        await client.get_document("users", "ghost")
    assert "ghost" in exc_info.value.identifier


@pytest.mark.asyncio
async def test_delete_missing_document_raises_not_found(client, store):
    store.seed("users", "u1", {"name": "Fay"})

    await client.delete_document("users", "u1")

    assert "u1" not in store.collections["users"]
    with pytest.raises(NotFoundError):
        await client.delete_document("users", "u1")


@pytest.mark.asyncio
async def test_list_skips_undecodable_documents(client, store, caplog):
    store.seed("users", "good1", {"name": "Gus"})
    store.seed_raw("users", "bad", {"age": {"doubleValue": "not-a-number"}})
    store.seed("users", "good2", {"name": "Hal"})

    documents = await client.list_documents("users")

    assert documents == [{"name": "Gus"}, {"name": "Hal"}]
    assert "bad" in caplog.text


@pytest.mark.asyncio
async def test_list_caps_page_size(client, store):
    await client.list_documents("users", limit=500)

    assert store.requests[-1].url.params.get("pageSize") == "100"


@pytest.mark.asyncio
async def test_list_empty_collection_returns_empty(client):
    assert await client.list_documents("nothing") == []


@pytest.mark.asyncio
async def test_list_document_entries_pairs_ids(client, store):
    store.seed("users", "a", {"n": 1})
    store.seed("users", "b", {"n": 2})

    assert await client.list_document_entries("users", limit=1) == [("a", {"n": 1})]


@pytest.mark.asyncio
async def test_run_query_skips_heartbeats_and_blank_lines(client, store):
    store.query_response = "\n".join([
        '{"readTime": "2024-01-01T00:00:00Z"}',
        "",
        '{"document": {"name": "projects/p/databases/(default)/documents/users/u1",'
        ' "fields": {"name": {"stringValue": "Ivy"}}}}',
        "not json",
        '{"readTime": "2024-01-01T00:00:01Z", "skippedResults": 1}',
    ])

    results = await client.run_query(client.query_builder("users").where_eq("name", "Ivy").build())

    assert results == [{"name": "Ivy"}]
    assert store.query_bodies[-1]["structuredQuery"]["where"]["fieldFilter"]["op"] == "EQUAL"


@pytest.mark.asyncio
async def test_run_query_accepts_json_array_body(client, store):
    store.seed("users", "u1", {"name": "Jon"})
    store.seed("users", "u2", {"name": "Kim"})

    results = await client.run_query(client.query_builder("users").limit(1).build())

    assert results == [{"name": "Jon"}]


@pytest.mark.asyncio
async def test_forbidden_maps_to_auth_error():
    client = make_client(FakeFirestore(), api_key="wrong-key")
    with pytest.raises(AuthError) as exc_info:
        await client.get_document("users", "u1")
    assert exc_info.value.hint
    await client.client.aclose()


@pytest.mark.asyncio
async def test_server_error_keeps_store_body(client, store):
    store.fail_status = 500

    with pytest.raises(StoreError) as exc_info:
        await client.create_document("users", {"name": "Lee"})

    assert exc_info.value.status_code == 500
    assert "Injected failure" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_failure_maps_to_transport_error(config):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = FirestoreClient(config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))
    with pytest.raises(TransportError):
        await client.list_documents("users")
    await client.client.aclose()


@pytest.mark.asyncio
async def test_invalid_json_body_raises_serialization_error(config):
    client = FirestoreClient(
        config,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))),
    )
    with pytest.raises(SerializationError):
        await client.get_document("users", "u1")
    await client.client.aclose()


@pytest.mark.asyncio
async def test_overflowing_integer_is_rejected_before_sending(client, store):
    with pytest.raises(SerializationError):
        await client.create_document("users", {"big": 2 ** 64})
    assert store.requests == []


def test_config_documents_url(config):
    assert config.documents_url == "https://firestore.test/v1/projects/test-project/databases/(default)/documents"


def test_config_from_env_requires_credentials(monkeypatch):
    monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)
    monkeypatch.setattr("firedocs.config.settings.FIREBASE_PROJECT_ID", "")
    with pytest.raises(ConfigError):
        FirestoreConfig.from_env()


def test_config_from_env_reads_environment(monkeypatch):
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "env-project")
    monkeypatch.setenv("FIREBASE_API_KEY", "env-key")
    config = FirestoreConfig.from_env()
    assert (config.project_id, config.api_key) == ("env-project", "env-key")
