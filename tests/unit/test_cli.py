"""Tests for the command-line interface."""
import json

import pytest
from rich.prompt import Confirm, Prompt

from conftest import make_client
from firedocs.cli import exit_codes
from firedocs.cli.app import cli, main
from firedocs.exceptions import (
    AuthError,
    ConfigError,
    DecodeError,
    FileAccessError,
    FiredocsError,
    NotFoundError,
    SerializationError,
    StoreError,
    TransportError,
    ValidationError,
)
from firedocs.services.schema.json_manager import JsonSchemaManager


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli(argv)
    return exc_info.value.code


@pytest.mark.parametrize("error, code", [
    (NotFoundError("users/u1"), exit_codes.NOT_FOUND),
    (ValidationError("bad"), exit_codes.VALIDATION_ERROR),
    (ConfigError("bad"), exit_codes.CONFIG_ERROR),
    (AuthError("bad"), exit_codes.AUTH_ERROR),
    (TransportError("bad"), exit_codes.TRANSPORT_ERROR),
    (StoreError("bad", status_code=500), exit_codes.STORE_ERROR),
    (FileAccessError("bad"), exit_codes.FILE_ERROR),
    (SerializationError("bad"), exit_codes.SERIALIZATION_ERROR),
    (DecodeError("age"), exit_codes.SERIALIZATION_ERROR),
    (FiredocsError("bad"), exit_codes.GENERAL_ERROR),
])
def test_exit_code_follows_error_kind(error, code):
    assert exit_codes.for_error(error) == code


def test_missing_schema_file_exits_with_file_error(tmp_path, capsys):
    assert _exit_code(["schema", "validate", "-f", str(tmp_path / "missing.json")]) == exit_codes.FILE_ERROR
    assert "Error:" in capsys.readouterr().err


def test_schema_example_then_validate(tmp_path, capsys):
    path = str(tmp_path / "example.yaml")

    assert _exit_code(["schema", "example", "-o", path]) == exit_codes.SUCCESS
    assert _exit_code(["schema", "validate", "-f", path]) == exit_codes.SUCCESS
    assert "is valid" in capsys.readouterr().out


def test_schema_show_unknown_collection_is_not_found(tmp_path, capsys):
    path = str(tmp_path / "example.json")
    JsonSchemaManager.create_example_schema_file(path)

    assert _exit_code(["schema", "show", "-i", path, "-c", "orders"]) == exit_codes.NOT_FOUND
    assert _exit_code(["schema", "show", "-i", path, "-c", "users"]) == exit_codes.SUCCESS
    assert "email" in capsys.readouterr().out


def test_missing_credentials_exit_with_config_error(monkeypatch, capsys):
    monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)
    monkeypatch.delenv("FIREBASE_API_KEY", raising=False)
    monkeypatch.setattr("firedocs.config.settings.FIREBASE_PROJECT_ID", "")
    monkeypatch.setattr("firedocs.config.settings.FIREBASE_API_KEY", "")

    assert _exit_code(["data", "read", "-c", "users", "-i", "u1"]) == exit_codes.CONFIG_ERROR
    assert "Hint:" in capsys.readouterr().err


def test_unknown_subcommand_is_a_usage_error(capsys):
    assert _exit_code(["reports"]) == 2
    capsys.readouterr()


def test_data_create_read_and_list(store, capsys):
    assert main(["data", "create", "-c", "users", "-i", "ann", "-j", '{"name": "Ann", "age": 30}'],
                client=make_client(store)) == exit_codes.SUCCESS
    assert "ann" in store.collections["users"]
    capsys.readouterr()

    assert main(["data", "read", "-c", "users", "-i", "ann"], client=make_client(store)) == exit_codes.SUCCESS
    assert json.loads(capsys.readouterr().out) == {"name": "Ann", "age": 30}

    assert main(["data", "list", "-c", "users", "-f", "json"], client=make_client(store)) == exit_codes.SUCCESS
    captured = capsys.readouterr()
    assert json.loads(captured.out) == [{"id": "ann", "data": {"name": "Ann", "age": 30}}]
    assert "Total: 1 documents" in captured.err


def test_data_create_rejects_non_object_json(store):
    with pytest.raises(ValidationError):
        main(["data", "create", "-c", "users", "-j", "[1, 2]"], client=make_client(store))


def test_data_create_through_form(store, monkeypatch, capsys):
    monkeypatch.setattr(Prompt, "ask", lambda *args, **kwargs: "Zed")
    monkeypatch.setattr(Confirm, "ask", lambda *args, **kwargs: True)

    assert main(["data", "create", "-c", "things", "-i", "z"], client=make_client(store)) == exit_codes.SUCCESS

    assert store.fields_of("things", "z") == {"name": {"stringValue": "Zed"}}
    capsys.readouterr()


def test_data_update_merges_by_default(store, capsys):
    store.seed("users", "u1", {"name": "Ann", "age": 30})

    assert main(["data", "update", "-c", "users", "-i", "u1", "-j", '{"age": 31}'],
                client=make_client(store)) == exit_codes.SUCCESS

    assert store.fields_of("users", "u1") == {"name": {"stringValue": "Ann"}, "age": {"integerValue": "31"}}
    capsys.readouterr()


def test_data_delete_declined_keeps_document(store, monkeypatch, capsys):
    store.seed("users", "u1", {"name": "Ann"})
    monkeypatch.setattr(Confirm, "ask", lambda *args, **kwargs: False)

    assert main(["data", "delete", "-c", "users", "-i", "u1"], client=make_client(store)) == exit_codes.SUCCESS
    assert "u1" in store.collections["users"]

    assert main(["data", "delete", "-c", "users", "-i", "u1", "-y"], client=make_client(store)) == exit_codes.SUCCESS
    assert "u1" not in store.collections["users"]
    capsys.readouterr()


def test_data_read_missing_document_raises_not_found(store):
    with pytest.raises(NotFoundError):
        main(["data", "read", "-c", "users", "-i", "ghost"], client=make_client(store))


def test_query_builds_filters_and_limit(store, capsys):
    store.seed("users", "a", {"name": "Ann", "age": 30})
    store.seed("users", "b", {"name": "Ben", "age": 40})

    argv = ["query", "-c", "users", "--where", "age", ">=", "18", "--where", "name", "!=", "Cy",
            "--order-by", "age", "--desc", "--limit", "1"]
    assert main(argv, client=make_client(store)) == exit_codes.SUCCESS

    assert json.loads(capsys.readouterr().out) == [{"name": "Ann", "age": 30}]
    query = store.query_bodies[-1]["structuredQuery"]
    filters = query["where"]["compositeFilter"]["filters"]
    assert filters[0]["fieldFilter"]["value"] == {"integerValue": "18"}
    assert filters[1]["fieldFilter"]["value"] == {"stringValue": "Cy"}
    assert query["orderBy"] == [{"field": {"fieldPath": "age"}, "direction": "DESCENDING"}]


def test_negative_query_limit_exits_with_validation_error(monkeypatch, capsys):
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "cli-project")
    monkeypatch.setenv("FIREBASE_API_KEY", "cli-key")

    assert _exit_code(["query", "-c", "users", "--limit", "-1"]) == exit_codes.VALIDATION_ERROR
    assert "must not be negative" in capsys.readouterr().err


def test_collections_list_and_info(store, capsys):
    for i in range(3):
        store.seed("orders", f"o{i}", {"total": i})

    assert main(["collections", "list", "-f", "json"], client=make_client(store)) == exit_codes.SUCCESS
    listed = json.loads(capsys.readouterr().out)
    assert [(info["name"], info["document_count"]) for info in listed] == [("orders", 3)]

    assert main(["collections", "info", "-c", "orders"], client=make_client(store)) == exit_codes.SUCCESS
    assert "Documents: 3" in capsys.readouterr().out

    with pytest.raises(NotFoundError):
        main(["collections", "info", "-c", "ghosts"], client=make_client(store))


def test_schema_import_stores_definitions_and_manual_export_reads_them(store, tmp_path, capsys):
    example = str(tmp_path / "example.json")
    exported = tmp_path / "exported.json"
    JsonSchemaManager.create_example_schema_file(example)

    assert main(["schema", "import", "-i", example], client=make_client(store)) == exit_codes.SUCCESS
    assert "users Index 1: email asc (unique)" in capsys.readouterr().out
    assert set(store.collections["_metadata_collections"]) == {"users", "posts"}

    assert main(["schema", "export", "--manual", "-o", str(exported)], client=make_client(store)) == exit_codes.SUCCESS
    assert set(json.loads(exported.read_text())["collections"]) == {"users", "posts"}
    capsys.readouterr()


@pytest.mark.parametrize("argv", [
    ["collections", "list"],
    ["collections", "list", "-f", "text"],
    ["collections", "describe", "-c", "users"],
    ["collections", "describe", "-c", "users", "-f", "text"],
    ["data", "list", "-c", "users"],
    ["data", "list", "-c", "users", "-f", "text"],
    ["data", "read", "-c", "users", "-i", "u1", "-f", "table"],
    ["data", "read", "-c", "users", "-i", "u1", "-f", "yaml"],
])
def test_human_readable_formats_mention_the_data(store, capsys, argv):
    store.seed("users", "u1", {"name": "Ann", "email": "ann@example.com", "tags": ["a", "b"]})

    assert main(argv, client=make_client(store)) == exit_codes.SUCCESS
    out = capsys.readouterr().out
    assert "users" in out or "Ann" in out


def test_schema_sync_stores_definitions_like_import(store, tmp_path, capsys):
    example = str(tmp_path / "example.yaml")
    JsonSchemaManager.create_example_schema_file(example)

    assert main(["schema", "sync", "-i", example], client=make_client(store)) == exit_codes.SUCCESS

    assert set(store.collections["_metadata_collections"]) == {"users", "posts"}
    capsys.readouterr()


def test_empty_merge_update_from_cli_is_rejected(store):
    store.seed("users", "u1", {"name": "Ann"})

    with pytest.raises(ValidationError):
        main(["data", "update", "-c", "users", "-i", "u1", "-j", "{}"], client=make_client(store))

    assert store.fields_of("users", "u1") == {"name": {"stringValue": "Ann"}}
