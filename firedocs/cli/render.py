"""Rich renderables for CLI output. Pure transforms, no I/O."""
from typing import Any, Dict, List, Sequence, Tuple

from rich.table import Table

from firedocs.schemas.collections import CollectionInfo, CollectionSchema
from firedocs.schemas.definitions import Collection
from firedocs.services.form.data_entry import infer_form_type
from firedocs.services.firestore.values import to_dynamic
from firedocs.utils.json_helpers import format_display_value

# Widest document tables show this many field columns
MAX_DOCUMENT_COLUMNS = 6


def _table(title: str) -> Table:
    return Table(title=title, show_header=True, header_style="bold magenta", border_style="dim")


def collections_table(collections: Sequence[CollectionInfo]) -> Table:
    table = _table("Firestore Collections")
    table.add_column("Collection", style="cyan")
    table.add_column("Documents", justify="right")
    table.add_column("Estimated Size", justify="right")
    table.add_column("Last Modified")
    for info in collections:
        table.add_row(info.name, str(info.document_count), info.estimated_size, info.last_modified or "Unknown")
    return table


def collections_text(collections: Sequence[CollectionInfo]) -> str:
    return "\n".join(
        f"{info.name}: {info.document_count} document(s), {info.estimated_size}" for info in collections
    )


def schema_table(schema: CollectionSchema) -> Table:
    table = _table(f"Collection: {schema.collection_name} ({schema.total_documents} sampled)")
    table.add_column("Field", style="cyan")
    table.add_column("Type")
    table.add_column("Required", justify="center")
    table.add_column("Frequency", justify="right")
    table.add_column("Samples")
    table.add_column("Auto")
    for field in schema.fields:
        table.add_row(
            field.name,
            field.field_type,
            "yes" if field.is_required else "no",
            f"{field.frequency}/{schema.total_documents}",
            format_display_value(", ".join(field.sample_values)),
            field.auto_field.description() if field.auto_field else "",
        )
    return table


def schema_text(schema: CollectionSchema) -> str:
    lines = [f"Collection: {schema.collection_name}", f"Documents sampled: {schema.total_documents}"]
    for field in schema.fields:
        required = "required" if field.is_required else "optional"
        lines.append(f"  {field.name}: {field.field_type} ({required}, {field.frequency}/{schema.total_documents})")
    return "\n".join(lines)


def documents_table(collection: str, entries: Sequence[Tuple[str, Dict[str, Any]]]) -> Table:
    """One row per document; columns are the first field names seen across the page."""
    columns: List[str] = []
    for _, data in entries:
        for name in data:
            if name not in columns:
                columns.append(name)

    table = _table(f"Documents in '{collection}'")
    table.add_column("ID", style="cyan")
    for name in columns[:MAX_DOCUMENT_COLUMNS]:
        table.add_column(name)
    for document_id, data in entries:
        cells = [format_display_value(data[name], 30) if name in data else "" for name in columns[:MAX_DOCUMENT_COLUMNS]]
        table.add_row(document_id, *cells)
    if len(columns) > MAX_DOCUMENT_COLUMNS:
        table.caption = f"{len(columns) - MAX_DOCUMENT_COLUMNS} more field(s) not shown"
    return table


def documents_text(entries: Sequence[Tuple[str, Dict[str, Any]]]) -> str:
    return "\n".join(
        f"{i}. {document_id} - {len(data)} fields" for i, (document_id, data) in enumerate(entries, start=1)
    )


def document_table(document_id: str, data: Dict[str, Any]) -> Table:
    table = _table(f"Document: {document_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_column("Type", style="dim")
    for name, value in data.items():
        table.add_row(name, format_display_value(value), infer_form_type(value) if value is not None else "null")
    return table


def definitions_table(collections: Sequence[Collection]) -> Table:
    table = _table("Defined Collections")
    table.add_column("Collection", style="cyan")
    table.add_column("Fields", justify="right")
    table.add_column("Indexes", justify="right")
    table.add_column("Rules", justify="right")
    table.add_column("Description")
    for collection in collections:
        table.add_row(
            collection.name,
            str(len(collection.fields)),
            str(len(collection.indexes)),
            str(len(collection.validation_rules)),
            collection.description or "",
        )
    return table


def definition_table(collection: Collection) -> Table:
    table = _table(f"Collection: {collection.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Type")
    table.add_column("Required", justify="center")
    table.add_column("Default")
    table.add_column("Rules")
    for field in collection.fields:
        rules = [
            rule.rule_type.value if rule.value is None else f"{rule.rule_type.value}={rule.value}"
            for rule in collection.validation_rules if rule.field == field.name
        ]
        default = ""
        if field.default_value is not None:
            default = format_display_value(to_dynamic(field.default_value))
        table.add_row(field.name, field.field_type.value, "yes" if field.required else "no", default, ", ".join(rules))
    return table
