"""Command-line entry point and command routing for firedocs.

``cli()`` is the only error boundary: library errors are rendered with
their hint and turned into an exit code chosen by the error's ``kind``.
Commands themselves raise and never exit.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml
from rich.markup import escape
from rich.prompt import Confirm

from firedocs.cli import exit_codes, render
from firedocs.cli.console import console, err_console, print_raw, status
from firedocs.config.settings import FIRESTORE_SCHEMA_SAMPLE_SIZE, LOG_LEVEL, FirestoreConfig
from firedocs.exceptions import FiredocsError, NotFoundError, ValidationError
from firedocs.schemas.collections import CollectionSchema
from firedocs.services.firestore.client import FirestoreClient
from firedocs.services.firestore.collection_service import CollectionManager
from firedocs.services.firestore.query_builder import create_filter
from firedocs.services.form.data_entry import DataEntryForm, prompt_form
from firedocs.services.schema.json_manager import JsonSchemaManager, read_structured_file
from firedocs.utils.json_helpers import dumps_pretty

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="firedocs", description="Firestore document and schema toolkit.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level.")
    groups = parser.add_subparsers(dest="group", required=True)

    # schema
    schema = groups.add_parser("schema", help="Schema file management")
    actions = schema.add_subparsers(dest="action", required=True)
    p = actions.add_parser("export", help="Export schemas to a JSON or YAML file")
    p.add_argument("-o", "--output", default="schema.json")
    p.add_argument("--manual", action="store_true",
                   help="Export defined collections instead of discovering them from the database")
    p = actions.add_parser("import", aliases=["sync"], help="Import a schema file and store its definitions")
    p.add_argument("-i", "--input", required=True)
    p = actions.add_parser("example", help="Write an example schema file")
    p.add_argument("-o", "--output", default="example-schema.json")
    p = actions.add_parser("validate", help="Check a schema file")
    p.add_argument("-f", "--file", required=True)
    p = actions.add_parser("list", help="List the collections of a schema file")
    p.add_argument("-i", "--input", required=True)
    p = actions.add_parser("show", help="Show one collection of a schema file")
    p.add_argument("-i", "--input", required=True)
    p.add_argument("-c", "--collection", required=True)

    # data
    data = groups.add_parser("data", help="Document operations")
    actions = data.add_subparsers(dest="action", required=True)
    p = actions.add_parser("create", help="Create a document")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-i", "--id", help="Document id; generated when omitted")
    p.add_argument("-j", "--json", help="Document body as JSON; opens the form when omitted")
    p.add_argument("--interactive", action="store_true", help="Use the form even if JSON is given")
    p = actions.add_parser("read", help="Read a document")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-i", "--id", required=True)
    p.add_argument("-f", "--format", choices=["json", "table", "yaml"], default="json")
    p = actions.add_parser("update", help="Update a document")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-i", "--id", required=True)
    p.add_argument("-j", "--json", help="Fields to write as JSON; opens the form when omitted")
    p.add_argument("--interactive", action="store_true", help="Use the form even if JSON is given")
    p.add_argument("--replace", action="store_true", help="Replace the whole document instead of merging")
    p = actions.add_parser("delete", help="Delete a document")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-i", "--id", required=True)
    p.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    p = actions.add_parser("export", help="Export a collection to a data file")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-o", "--output", required=True)
    p = actions.add_parser("import", help="Import a data file")
    p.add_argument("-i", "--input", required=True)
    p.add_argument("-c", "--collection", help="Target collection; defaults to the one in the file")
    p = actions.add_parser("backup", help="Back up every discovered collection")
    p.add_argument("-d", "--directory", default="backup")
    p = actions.add_parser("list", help="List documents of a collection")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-l", "--limit", type=int)
    p.add_argument("-f", "--format", choices=["table", "json", "text"], default="table")

    # collections
    collections = groups.add_parser("collections", help="Collection discovery")
    actions = collections.add_subparsers(dest="action", required=True)
    p = actions.add_parser("list", help="Discover collections")
    p.add_argument("-f", "--format", choices=["table", "text", "json"], default="table")
    p = actions.add_parser("describe", help="Infer a collection's schema by sampling")
    p.add_argument("-c", "--collection", required=True)
    p.add_argument("-s", "--sample", type=int, default=FIRESTORE_SCHEMA_SAMPLE_SIZE)
    p.add_argument("-f", "--format", choices=["table", "text", "json"], default="table")
    p = actions.add_parser("info", help="Document count and size estimate")
    p.add_argument("-c", "--collection", required=True)

    # query
    query = groups.add_parser("query", help="Run a structured query")
    query.add_argument("-c", "--collection", required=True)
    query.add_argument("--where", nargs=3, action="append", metavar=("FIELD", "OP", "VALUE"), default=[],
                       help="Filter such as: age '>=' 18. VALUE is parsed as JSON, else taken as text")
    query.add_argument("--order-by", action="append", default=[], metavar="FIELD")
    query.add_argument("--desc", action="store_true", help="Sort the --order-by fields descending")
    query.add_argument("--limit", type=int)
    query.add_argument("--offset", type=int)
    query.add_argument("-f", "--format", choices=["json", "yaml"], default="json")

    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_json_object(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ValidationError(f"Invalid JSON: {str(e)}") from e
    if not isinstance(data, dict):
        raise ValidationError("Root value must be an object")
    return data


def _parse_query_value(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def _print_data(data: Any, output_format: str):
    if output_format == "yaml":
        print_raw(yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip())
    else:
        print_raw(dumps_pretty(data))


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------

async def _handle_schema(args: argparse.Namespace, client_factory) -> int:
    action = args.action

    if action == "example":
        JsonSchemaManager.create_example_schema_file(args.output)
        console.print(f"[green]Example schema created at {args.output}[/green]")
        console.print("Edit this file to define your collections, then use 'schema import' to load it")
        return exit_codes.SUCCESS

    if action in ("validate", "list", "show"):
        path = args.file if action == "validate" else args.input
        collections = JsonSchemaManager.parse_schema(read_structured_file(path))
        if action == "validate":
            console.print(f"[green]Schema file {path} is valid[/green] ({len(collections)} collection(s))")
        elif action == "list":
            console.print(render.definitions_table(collections))
        else:
            match = next((c for c in collections if c.name == args.collection), None)
            if match is None:
                raise NotFoundError(args.collection, message=f"Collection {args.collection} not in {path}")
            console.print(render.definition_table(match))
            for index in match.indexes:
                fields = ", ".join(f"{f.field_path} {f.order.value}" for f in index.fields)
                console.print(f"Index: {fields}{' (unique)' if index.unique else ''}")
        return exit_codes.SUCCESS

    client = client_factory()
    manager = JsonSchemaManager(client)

    if action in ("import", "sync"):
        collections = manager.import_schema_from_file(args.input)
        written = await manager.schema_manager.initialize_collections()
        console.print(f"[green]Schema imported from {args.input}[/green]: "
                      f"{len(collections)} collection(s), {written} definition(s) stored")
        for collection in collections:
            for line in manager.schema_manager.required_indexes(collection.name):
                console.print(f"  {collection.name} {line}")
        return exit_codes.SUCCESS

    # export
    if args.manual:
        status("Exporting defined schemas...")
        await manager.schema_manager.load_collections_from_metadata()
        count = manager.export_schema_to_file(args.output)
        console.print(f"[green]{count} defined schema(s) exported to {args.output}[/green]")
    else:
        status("Discovering and exporting schemas from database...")
        schema = await manager.export_discovered_schemas(args.output)
        console.print(f"[green]{len(schema.collections)} schema(s) exported to {args.output}[/green]")
    return exit_codes.SUCCESS


async def _document_from_form(client: FirestoreClient, collection: str) -> Optional[Dict[str, Any]]:
    try:
        schema = await CollectionManager(client).describe_collection(collection)
    except NotFoundError:
        schema = CollectionSchema(collection_name=collection, total_documents=0)
    return prompt_form(DataEntryForm.from_schema(collection, schema))


async def _handle_data(args: argparse.Namespace, client_factory) -> int:
    client = client_factory()
    action = args.action

    if action == "create":
        if args.json and not args.interactive:
            document = _parse_json_object(args.json)
        else:
            document = await _document_from_form(client, args.collection)
            if document is None:
                console.print("[yellow]Document creation cancelled[/yellow]")
                return exit_codes.SUCCESS
        status(f"Creating document in collection '{args.collection}'...")
        document_id = await client.create_document(args.collection, document, args.id)
        console.print(f"[green]Document created with ID:[/green] {document_id}")
        return exit_codes.SUCCESS

    if action == "read":
        document = await client.get_document(args.collection, args.id)
        if args.format == "table":
            console.print(render.document_table(args.id, document))
        else:
            _print_data(document, args.format)
        return exit_codes.SUCCESS

    if action == "update":
        if args.json and not args.interactive:
            changes = _parse_json_object(args.json)
        else:
            existing = await client.get_document(args.collection, args.id)
            changes = prompt_form(DataEntryForm.from_existing_data(args.collection, args.id, existing))
            if changes is None:
                console.print("[yellow]Document update cancelled[/yellow]")
                return exit_codes.SUCCESS
        merge = not args.replace
        status(f"Updating document '{args.id}' in collection '{args.collection}' (merge: {merge})...")
        await client.update_document(args.collection, args.id, changes, merge=merge)
        console.print("[green]Document updated successfully[/green]")
        return exit_codes.SUCCESS

    if action == "delete":
        if not args.yes and not Confirm.ask(
            f"Delete document '{args.id}' from collection '{args.collection}'?", default=False, console=err_console
        ):
            console.print("[yellow]Deletion cancelled[/yellow]")
            return exit_codes.SUCCESS
        await client.delete_document(args.collection, args.id)
        console.print("[green]Document deleted successfully[/green]")
        return exit_codes.SUCCESS

    if action == "list":
        entries = await client.list_document_entries(args.collection, args.limit)
        if not entries:
            console.print("No documents found.")
        elif args.format == "json":
            _print_data([{"id": document_id, "data": data} for document_id, data in entries], "json")
        elif args.format == "text":
            print_raw(render.documents_text(entries))
        else:
            console.print(render.documents_table(args.collection, entries))
        status(f"Total: {len(entries)} documents")
        return exit_codes.SUCCESS

    manager = JsonSchemaManager(client)

    if action == "export":
        count = await manager.export_collection_data(args.collection, args.output)
        console.print(f"[green]Exported {count} items from '{args.collection}' to {args.output}[/green]")
    elif action == "import":
        count = await manager.import_collection_data(args.input, args.collection)
        console.print(f"[green]Imported {count} items[/green]")
    else:
        results = await manager.backup_all_data(args.directory)
        console.print(f"[green]Backup completed![/green] Total items backed up: {sum(results.values())}")
        for name, count in results.items():
            console.print(f"  - {name}: {count} items")
    return exit_codes.SUCCESS


async def _handle_collections(args: argparse.Namespace, client_factory) -> int:
    manager = CollectionManager(client_factory())

    if args.action == "list":
        status("Discovering collections...")
        collections = await manager.list_collections()
        if not collections:
            console.print("No collections found or all collections are empty")
        elif args.format == "json":
            _print_data([info.model_dump() for info in collections], "json")
        elif args.format == "text":
            print_raw(render.collections_text(collections))
        else:
            console.print(render.collections_table(collections))
            console.print(f"Found {len(collections)} collection(s)")
        return exit_codes.SUCCESS

    if args.action == "describe":
        schema = await manager.describe_collection(args.collection, args.sample)
        if args.format == "json":
            _print_data(schema.model_dump(mode="json"), "json")
        elif args.format == "text":
            print_raw(render.schema_text(schema))
        else:
            console.print(render.schema_table(schema))
        return exit_codes.SUCCESS

    info = await manager.get_collection_info(args.collection)
    if info.document_count == 0:
        raise NotFoundError(args.collection, message=f"Collection '{args.collection}' not found or empty")
    console.print(f"Collection: {info.name}")
    console.print(f"Documents: {info.document_count}")
    console.print(f"Estimated Size: {info.estimated_size}")
    console.print(f"Last Modified: {info.last_modified or 'Unknown'}")
    return exit_codes.SUCCESS


async def _handle_query(args: argparse.Namespace, client_factory) -> int:
    client = client_factory()
    builder = client.query_builder(args.collection)

    filters = [create_filter(field, op, _parse_query_value(value)) for field, op, value in args.where]
    if len(filters) == 1:
        builder = builder.where(filters[0])
    elif filters:
        builder = builder.and_(filters)
    for field in args.order_by:
        builder = builder.order_by(field, descending=args.desc)
    if args.limit is not None:
        builder = builder.limit(args.limit)
    if args.offset is not None:
        builder = builder.offset(args.offset)

    results = await client.run_query(builder.build())
    _print_data(results, args.format)
    status(f"{len(results)} document(s)")
    return exit_codes.SUCCESS


_HANDLERS = {
    "schema": _handle_schema,
    "data": _handle_data,
    "collections": _handle_collections,
    "query": _handle_query,
}


async def _run(args: argparse.Namespace, client: Optional[FirestoreClient]) -> int:
    created: List[FirestoreClient] = []

    def client_factory() -> FirestoreClient:
        if client is not None:
            return client
        if not created:
            created.append(FirestoreClient(FirestoreConfig.from_env()))
        return created[0]

    try:
        return await _HANDLERS[args.group](args, client_factory)
    finally:
        for owned in created:
            await owned.close()


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None, client: Optional[FirestoreClient] = None) -> int:
    """
    Run the CLI.

    Args:
        argv: Argument list; ``sys.argv[1:]`` when None
        client: Pre-built client; one is created from the environment when
            a command needs it and none is given

    Returns:
        Process exit code
    """
    args = _build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else LOG_LEVEL)
    return asyncio.run(_run(args, client))


def cli(argv: Optional[List[str]] = None):
    """Console-script entry point and the single error boundary."""
    try:
        sys.exit(main(argv))
    except FiredocsError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", highlight=False)
        if exc.hint:
            err_console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")
        sys.exit(exit_codes.for_error(exc))
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
        err_console.print(f"[bold red]Unexpected error.[/bold red]\n  {type(exc).__name__}: {escape(str(exc))}")
        sys.exit(exit_codes.UNEXPECTED_ERROR)
