"""Data-entry form built from an inferred schema or an existing document."""
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from rich.console import Console
from rich.prompt import Confirm, Prompt

from firedocs.exceptions import ValidationError
from firedocs.schemas.collections import AutoFieldType, CollectionSchema, FieldInfo
from firedocs.services.firestore.codec import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

# Inferred wire type -> form input type
_FORM_TYPES = {
    "string": "string",
    "integer": "integer",
    "double": "number",
    "boolean": "boolean",
    "timestamp": "timestamp",
    "array": "array",
    "map": "object",
}


class FormField(BaseModel):
    """One input of the form. ``value`` holds the raw text as typed."""
    name: str
    field_type: str = "string"
    value: str = ""
    required: bool = False
    description: Optional[str] = None
    default_value: Optional[str] = None


def parse_field_value(raw: str, field_type: str) -> Any:
    """
    Parse the text typed into a field.

    Args:
        raw: Text as entered
        field_type: Form input type (string, integer, number, boolean,
            array, object or timestamp); anything else is kept as text

    Returns:
        The parsed plain value, ``None`` for blank input

    Raises:
        ValidationError: when the text does not parse as the field type
    """
    text = raw.strip()
    if not text:
        return None

    if field_type == "integer":
        try:
            return int(text)
        except ValueError:
            raise ValidationError(f"Invalid integer: {text}") from None
    if field_type in ("number", "double"):
        try:
            return float(text)
        except ValueError:
            raise ValidationError(f"Invalid number: {text}") from None
    if field_type == "boolean":
        lowered = text.lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
        raise ValidationError(f"Invalid boolean: {text} (use true/false)")
    if field_type in ("array", "object"):
        try:
            parsed = json.loads(text)
        except ValueError:
            raise ValidationError(f"Invalid JSON: {text}") from None
        expected = list if field_type == "array" else dict
        if not isinstance(parsed, expected):
            raise ValidationError(f"Invalid {field_type}: {text}")
        return parsed
    if field_type == "timestamp":
        if text.lower() == "now":
            return format_timestamp(utc_now())
        try:
            return format_timestamp(parse_timestamp(text))
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {text} (use ISO 8601 format or 'now')") from None
    return raw


def infer_form_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def format_value_for_editing(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def _sample_default(field: FieldInfo, form_type: str) -> Optional[str]:
    if not field.sample_values or form_type in ("array", "object"):
        return None
    sample = field.sample_values[0]
    if form_type == "string" and sample.startswith('"') and sample.endswith('"'):
        return sample[1:-1]
    return None if sample == "null" else sample


class DataEntryForm:
    """
    A list of fields plus the auto fields filled in on submit.

    Auto fields never become inputs. Their generated value is only used
    when the document does not already carry that field.
    """

    def __init__(self, title: str, user_id: str = "system-user"):
        self.title = title
        self.user_id = user_id
        self.fields: List[FormField] = []
        self.auto_fields: Dict[str, AutoFieldType] = {}

    @classmethod
    def from_schema(cls, collection_name: str, schema: CollectionSchema, user_id: str = "system-user") -> "DataEntryForm":
        form = cls(f"Create Document in '{collection_name}'", user_id=user_id)

        for field in schema.fields:
            if field.auto_field is not None:
                form.auto_fields[field.name] = field.auto_field
                continue
            form_type = _FORM_TYPES.get(field.field_type, "string")
            default = _sample_default(field, form_type)
            form.add_field(FormField(
                name=field.name,
                field_type=form_type,
                value=default or "",
                required=field.is_required,
                description=f"{len(field.sample_values)} values, {field.unique_values} unique, "
                            f"frequency: {field.frequency}",
                default_value=default,
            ))

        if not form.fields:
            form.add_field(FormField(name="name", description="Document field"))
        return form

    @classmethod
    def from_existing_data(cls, collection_name: str, document_id: str, data: Dict[str, Any]) -> "DataEntryForm":
        form = cls(f"Update Document '{document_id}' in '{collection_name}'")
        for name, value in data.items():
            current = format_value_for_editing(value)
            form.add_field(FormField(
                name=name,
                field_type=infer_form_type(value),
                value=current,
                description=f"Current: {current}",
                default_value=current,
            ))
        return form

    def add_field(self, field: FormField):
        self.fields.append(field)

    def to_document(self) -> Dict[str, Any]:
        """
        Build the document from the entered values.

        Raises:
            ValidationError: when a required field is blank or a value does not parse
        """
        document: Dict[str, Any] = {}
        for field in self.fields:
            if not field.value.strip():
                if field.required:
                    raise ValidationError(f"Required field '{field.name}' cannot be empty")
                continue
            try:
                document[field.name] = parse_field_value(field.value, field.field_type)
            except ValidationError as e:
                raise ValidationError(f"Field '{field.name}': {e.message}") from e

        for name, auto_type in self.auto_fields.items():
            if name not in document:
                document[name] = auto_type.generate_value(self.user_id)
        return document


def prompt_form(form: DataEntryForm, console: Optional[Console] = None) -> Optional[Dict[str, Any]]:
    """
    Ask for every field on the terminal and return the document.

    Invalid input is reported and the form is asked again.

    Returns:
        The document, or None when the user cancels (Ctrl+C, EOF or
        declining to save)
    """
    console = console or Console()
    console.print(f"[bold cyan]{form.title}[/bold cyan]")
    if form.auto_fields:
        generated = ", ".join(f"{name} ({kind.description()})" for name, kind in form.auto_fields.items())
        console.print(f"[dim]Generated automatically: {generated}[/dim]")

    try:
        while True:
            for field in form.fields:
                label = f"{field.name} [dim]({field.field_type}{', required' if field.required else ''})[/dim]"
                field.value = Prompt.ask(label, default=field.value or "", console=console)

            try:
                document = form.to_document()
            except ValidationError as e:
                console.print(f"[red]{e.message}[/red]")
                continue

            if Confirm.ask("Save document?", default=True, console=console):
                return document
            logger.info("Form submission declined")
            return None
    except (KeyboardInterrupt, EOFError):
        console.print("[yellow]Cancelled[/yellow]")
        return None
