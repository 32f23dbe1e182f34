"""Tests for collection discovery and schema inference."""
import pytest

from firedocs.exceptions import NotFoundError
from firedocs.schemas.collections import AutoFieldType
from firedocs.services.firestore.collection_service import CollectionManager, format_size_estimate
from firedocs.services.firestore.field_analyser import detect_auto_field, identify_string_pattern


def _seed_people(store, count=10, with_age=8):
    for i in range(count):
        data = {"name": f"person{i}", "email": f"p{i}@example.com"}
        if i < with_age:
            data["age"] = 20 + i
        store.seed("people", f"p{i}", data)


@pytest.mark.asyncio
async def test_field_seen_in_some_documents_is_optional(client, store):
    _seed_people(store)

    schema = await CollectionManager(client).describe_collection("people", 50)

    assert schema.total_documents == 10
    age = schema.get_field("age")
    assert age.frequency == 8
    assert not age.is_required
    assert age.field_type == "integer"
    assert schema.get_field("name").is_required


@pytest.mark.asyncio
async def test_sample_values_are_capped_and_quoted(client, store):
    _seed_people(store)

    schema = await CollectionManager(client).describe_collection("people", 50)

    name = schema.get_field("name")
    assert len(name.sample_values) == 5
    assert name.sample_values[0] == '"person0"'
    assert schema.sample_document == {"name": "person0", "email": "p0@example.com", "age": 20}


@pytest.mark.asyncio
async def test_inconsistent_types_are_reported_as_mixed(client, store):
    store.seed("things", "a", {"value": 1})
    store.seed("things", "b", {"value": "one"})

    schema = await CollectionManager(client).describe_collection("things", 50)

    assert schema.get_field("value").field_type == "Mixed(integer, string)"


@pytest.mark.asyncio
async def test_sample_size_limits_documents(client, store):
    _seed_people(store)

    schema = await CollectionManager(client).describe_collection("people", 3)

    assert schema.total_documents == 3


@pytest.mark.asyncio
async def test_empty_collection_raises_not_found(client):
    with pytest.raises(NotFoundError):
        await CollectionManager(client).describe_collection("ghosts", 50)


@pytest.mark.asyncio
async def test_auto_fields_are_marked(client, store):
    store.seed("posts", "p1", {"title": "Hello", "created_at": "2024-01-01T00:00:00Z", "author_id": "u1"})

    schema = await CollectionManager(client).describe_collection("posts", 50)

    assert schema.get_field("created_at").auto_field is AutoFieldType.CREATED_AT
    assert schema.get_field("title").auto_field is None


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_list_collections_probes_candidates(client, store, parallel):
    store.seed("users", "u1", {"name": "A"})
    for i in range(3):
        store.seed("orders", f"o{i}", {"total": i})

    manager = CollectionManager(client, candidate_collections=["users", "orders", "empty"], parallel=parallel)
    collections = await manager.list_collections()

    assert [(info.name, info.document_count) for info in collections] == [("orders", 3), ("users", 1)]
    probed = {request.url.path.rsplit("/", 1)[-1] for request in store.requests}
    assert "_metadata_collections" in probed


@pytest.mark.asyncio
async def test_failing_probe_is_skipped(client, store):
    store.seed("users", "u1", {"name": "A"})
    store.seed("broken", "b1", {"x": "ok"})
    store.failing_collections.add("broken")

    collections = await CollectionManager(client, candidate_collections=["users", "broken"]).list_collections()

    assert [info.name for info in collections] == ["users"]


@pytest.mark.asyncio
async def test_collection_info(client, store):
    _seed_people(store, count=4)

    info = await CollectionManager(client).get_collection_info("people")

    assert info.document_count == 4
    assert info.estimated_size == "8.0KB"
    assert info.last_modified == "2024-01-01T00:00:04Z"


def test_size_estimate():
    assert format_size_estimate(0) == "Empty"
    assert format_size_estimate(1) == "2.0KB"
    assert format_size_estimate(1024) == "2.0MB"


def test_detect_auto_field_requires_matching_type():
    assert detect_auto_field("updated_at", "timestamp") is AutoFieldType.UPDATED_AT
    assert detect_auto_field("user_id", "string") is AutoFieldType.USER_ID
    assert detect_auto_field("created_at", "integer") is None
    assert detect_auto_field("title", "string") is None


def test_identify_string_pattern():
    assert identify_string_pattern(["a@example.com", "b@example.org"]) == "email"
    assert identify_string_pattern(["https://example.com/a", "http://x.io"]) == "url"
    assert identify_string_pattern(["hello", "a@example.com"]) is None
