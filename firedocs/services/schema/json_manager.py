"""Schema file and data file import/export."""
import json
import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from firedocs.config.settings import FIRESTORE_SCHEMA_SAMPLE_SIZE
from firedocs.exceptions import ConfigError, FileAccessError, FiredocsError, SerializationError
from firedocs.schemas.collections import CollectionSchema, FieldInfo
from firedocs.schemas.definitions import (
    Collection,
    FieldDefinition,
    FieldType,
    Index,
    IndexField,
    IndexOrder,
    RuleType,
    SchemaFile,
    SchemaFileCollection,
    SchemaFileField,
    SchemaFileIndex,
    SchemaFileIndexField,
    SchemaFileRule,
    ValidationRule,
)
from firedocs.schemas.documents import DataExport
from firedocs.services.firestore.client import FirestoreClient
from firedocs.services.firestore.codec import format_timestamp, utc_now
from firedocs.services.firestore.collection_service import CollectionManager
from firedocs.services.firestore.field_analyser import identify_string_pattern
from firedocs.services.firestore.values import from_dynamic, to_dynamic
from firedocs.services.schema.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
BACKUP_FALLBACK_COLLECTIONS = ["users"]

_DISCOVERED_TYPES = {"string", "integer", "double", "boolean", "timestamp", "array", "map"}


def is_yaml_path(path: str) -> bool:
    return path.lower().endswith((".yaml", ".yml"))


def read_structured_file(path: str) -> Any:
    """
    Read a JSON or YAML file (chosen by extension).

    Raises:
        FileAccessError: when the file cannot be read
        SerializationError: when the content does not parse
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise FileAccessError(f"Failed to read {path}: {e.strerror or str(e)}") from e

    try:
        if is_yaml_path(path):
            return yaml.safe_load(content)
        return json.loads(content)
    except (ValueError, yaml.YAMLError) as e:
        raise SerializationError(f"Failed to parse {path}: {str(e)}") from e


def write_structured_file(path: str, data: Any):
    """Write ``data`` as pretty JSON, or YAML for ``.yaml``/``.yml`` paths."""
    if is_yaml_path(path):
        content = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        content = json.dumps(data, indent=2, ensure_ascii=False)

    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise FileAccessError(f"Failed to write {path}: {e.strerror or str(e)}") from e


def _enum_value(enum_cls, raw: str, label: str):
    try:
        return enum_cls(raw)
    except ValueError:
        raise ConfigError(f"Unknown {label}: {raw}") from None


def _rule_argument(rule_type: RuleType, raw: Any) -> Any:
    if rule_type in (RuleType.MIN_LENGTH, RuleType.MAX_LENGTH):
        converter = int
    elif rule_type in (RuleType.MIN, RuleType.MAX):
        converter = float
    elif rule_type in (RuleType.REGEX, RuleType.CUSTOM):
        return "" if raw is None else str(raw)
    else:
        return None

    if raw is None:
        return converter(0)
    if isinstance(raw, bool):
        raise ConfigError(f"Invalid value for {rule_type.value} rule: {raw}")
    try:
        return converter(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {rule_type.value} rule: {raw}") from None


def collection_from_file(entry: SchemaFileCollection) -> Collection:
    """
    Convert a schema file collection into a definition.

    Raises:
        ConfigError: on an unknown field type, index order or rule type
    """
    fields = []
    for field in entry.fields:
        default_value = None
        if field.default_value is not None:
            try:
                default_value = from_dynamic(field.default_value)
            except SerializationError as e:
                raise ConfigError(f"Invalid default for field {field.name}: {e.message}") from e
        fields.append(FieldDefinition(
            name=field.name,
            field_type=_enum_value(FieldType, field.field_type, "field type"),
            required=field.required,
            default_value=default_value,
            description=field.description,
        ))

    indexes = [
        Index(
            fields=[
                IndexField(field_path=f.field_path, order=_enum_value(IndexOrder, f.order, "index order"))
                for f in index.fields
            ],
            unique=index.unique,
            description=index.description,
        )
        for index in entry.indexes
    ]

    rules = []
    for rule in entry.validation_rules:
        rule_type = _enum_value(RuleType, rule.rule_type, "validation rule type")
        rules.append(ValidationRule(
            field=rule.field,
            rule_type=rule_type,
            value=_rule_argument(rule_type, rule.value),
            description=rule.description,
        ))

    return Collection(
        name=entry.name,
        description=entry.description,
        fields=fields,
        indexes=indexes,
        validation_rules=rules,
    )


def collection_to_file(collection: Collection) -> SchemaFileCollection:
    return SchemaFileCollection(
        name=collection.name,
        description=collection.description,
        fields=[
            SchemaFileField(
                name=field.name,
                field_type=field.field_type.value,
                required=field.required,
                default_value=to_dynamic(field.default_value) if field.default_value is not None else None,
                description=field.description,
            )
            for field in collection.fields
        ],
        indexes=[
            SchemaFileIndex(
                fields=[SchemaFileIndexField(field_path=f.field_path, order=f.order.value) for f in index.fields],
                unique=index.unique,
                description=index.description,
            )
            for index in collection.indexes
        ],
        validation_rules=[
            SchemaFileRule(field=rule.field, rule_type=rule.rule_type.value, value=rule.value,
                           description=rule.description)
            for rule in collection.validation_rules
        ],
    )


def _discovered_default(field: FieldInfo, field_type: str) -> Any:
    """Derive a default from the first sample of a required field."""
    if not field.is_required or not field.sample_values:
        return None
    sample = field.sample_values[0]
    try:
        if field_type == "string":
            return sample.strip('"')
        if field_type == "integer":
            return int(sample)
        if field_type == "double":
            return float(sample)
        if field_type == "boolean" and sample in ("true", "false"):
            return sample == "true"
    except ValueError:
        return None
    return None


def discovered_collection_to_file(schema: CollectionSchema) -> SchemaFileCollection:
    """
    Turn an inferred schema into a schema file collection.

    Mixed types are written as ``"mixed"``; string fields whose samples all
    look like emails or URLs get a matching validation rule.
    """
    fields = []
    rules = []
    for field in schema.fields:
        if field.field_type in _DISCOVERED_TYPES:
            field_type = field.field_type
        elif field.field_type.startswith("Mixed("):
            field_type = "mixed"
        else:
            field_type = "unknown"

        fields.append(SchemaFileField(
            name=field.name,
            field_type=field_type,
            required=field.is_required,
            default_value=_discovered_default(field, field_type),
            description=(
                f"Found in {field.frequency}/{schema.total_documents} documents. "
                f"Samples: {', '.join(field.sample_values)}"
            ),
        ))

        if field_type == "string":
            pattern = identify_string_pattern([value.strip('"') for value in field.sample_values])
            if pattern in ("email", "url"):
                rules.append(SchemaFileRule(field=field.name, rule_type=pattern,
                                            description=f"Inferred {pattern} format"))

    return SchemaFileCollection(
        name=schema.collection_name,
        description=f"Discovered collection with {schema.total_documents} documents",
        fields=fields,
        validation_rules=rules,
    )


def example_schema() -> SchemaFile:
    """Example schema file with ``users`` and ``posts`` collections."""
    users = SchemaFileCollection(
        name="users",
        description="User accounts",
        fields=[
            SchemaFileField(name="id", field_type="string", description="Auto-generated user ID"),
            SchemaFileField(name="name", field_type="string", required=True, description="User's full name"),
            SchemaFileField(name="email", field_type="string", required=True, description="User's email address"),
            SchemaFileField(name="age", field_type="integer", required=True, default_value=18,
                            description="User's age"),
            SchemaFileField(name="active", field_type="boolean", default_value=True, description="Account status"),
            SchemaFileField(name="created_at", field_type="timestamp", required=True,
                            description="Account creation timestamp"),
            SchemaFileField(name="tags", field_type="array", default_value=[], description="User tags"),
            SchemaFileField(name="profile", field_type="map", description="User profile data"),
        ],
        indexes=[
            SchemaFileIndex(fields=[SchemaFileIndexField(field_path="email")], unique=True,
                            description="Unique email index"),
            SchemaFileIndex(
                fields=[SchemaFileIndexField(field_path="active"),
                        SchemaFileIndexField(field_path="created_at", order="desc")],
                description="Active users by creation date",
            ),
        ],
        validation_rules=[
            SchemaFileRule(field="email", rule_type="email", description="Must be valid email format"),
            SchemaFileRule(field="age", rule_type="min", value=13, description="Minimum age 13"),
            SchemaFileRule(field="age", rule_type="max", value=120, description="Maximum age 120"),
            SchemaFileRule(field="name", rule_type="min_length", value=2,
                           description="Name must be at least 2 characters"),
            SchemaFileRule(field="name", rule_type="max_length", value=100,
                           description="Name must be at most 100 characters"),
        ],
    )
    posts = SchemaFileCollection(
        name="posts",
        description="User posts",
        fields=[
            SchemaFileField(name="title", field_type="string", required=True, description="Post title"),
            SchemaFileField(name="content", field_type="string", required=True, description="Post content"),
            SchemaFileField(name="author_id", field_type="string", required=True,
                            description="Reference to user ID"),
            SchemaFileField(name="published", field_type="boolean", default_value=False,
                            description="Publication status"),
            SchemaFileField(name="created_at", field_type="timestamp", required=True,
                            description="Creation timestamp"),
        ],
        indexes=[
            SchemaFileIndex(
                fields=[SchemaFileIndexField(field_path="author_id"),
                        SchemaFileIndexField(field_path="published")],
                description="Posts by author and publication status",
            ),
        ],
        validation_rules=[
            SchemaFileRule(field="title", rule_type="min_length", value=5,
                           description="Title must be at least 5 characters"),
            SchemaFileRule(field="title", rule_type="max_length", value=200,
                           description="Title must be at most 200 characters"),
            SchemaFileRule(field="content", rule_type="min_length", value=10,
                           description="Content must be at least 10 characters"),
        ],
    )
    return SchemaFile(version=SCHEMA_VERSION, collections={"users": users, "posts": posts})


class JsonSchemaManager:
    """
    Moves schemas and collection data between Firestore and JSON/YAML files.
    """

    def __init__(
        self,
        client: FirestoreClient,
        schema_manager: Optional[SchemaManager] = None,
        collection_manager: Optional[CollectionManager] = None,
    ):
        self.client = client
        self.schema_manager = schema_manager or SchemaManager(client)
        self.collection_manager = collection_manager or CollectionManager(client)

    # ------------------------------------------------------------------
    # Schema files
    # ------------------------------------------------------------------

    def current_schema(self) -> SchemaFile:
        """The defined collections in schema file form."""
        return SchemaFile(
            version=SCHEMA_VERSION,
            collections={
                name: collection_to_file(collection)
                for name, collection in self.schema_manager.collections.items()
            },
        )

    def export_schema_to_file(self, path: str) -> int:
        """
        Write the defined collections to ``path``.

        Returns:
            Number of collections written
        """
        schema = self.current_schema()
        write_structured_file(path, schema.model_dump(mode="json"))
        logger.info(f"Exported {len(schema.collections)} collection definition(s) to {path}")
        return len(schema.collections)

    @staticmethod
    def parse_schema(data: Any) -> List[Collection]:
        """
        Parse schema file content into definitions without registering them.

        Raises:
            ConfigError: when the content is not a valid schema file
        """
        try:
            schema = SchemaFile.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid schema file: {str(e)}") from e
        return [collection_from_file(entry) for entry in schema.collections.values()]

    def load_schema(self, data: Any) -> List[Collection]:
        """Parse schema file content and register every collection it defines."""
        collections = self.parse_schema(data)
        for collection in collections:
            self.schema_manager.define_collection(collection)
        return collections

    def import_schema_from_file(self, path: str) -> List[Collection]:
        """
        Load a schema file and register its collections.

        Raises:
            FileAccessError: when the file cannot be read
            ConfigError: when the file is not a valid schema
        """
        collections = self.load_schema(read_structured_file(path))
        logger.info(f"Imported {len(collections)} collection definition(s) from {path}")
        return collections

    @staticmethod
    def create_example_schema_file(path: str):
        write_structured_file(path, example_schema().model_dump(mode="json"))
        logger.info(f"Wrote example schema to {path}")

    async def export_discovered_schemas(self, path: str, sample_size: int = FIRESTORE_SCHEMA_SAMPLE_SIZE) -> SchemaFile:
        """
        Discover collections, infer their schemas and write them to ``path``.

        Defined collections override discovered ones with the same name.
        Collections that fail to describe are logged and left out.
        """
        schema = SchemaFile(version=SCHEMA_VERSION)

        for info in await self.collection_manager.list_collections():
            try:
                described = await self.collection_manager.describe_collection(info.name, sample_size)
            except FiredocsError as e:
                logger.warning(f"Failed to analyze collection '{info.name}': {e}")
                continue
            schema.collections[info.name] = discovered_collection_to_file(described)

        schema.collections.update(self.current_schema().collections)

        write_structured_file(path, schema.model_dump(mode="json"))
        logger.info(f"Exported {len(schema.collections)} schema(s) to {path}")
        return schema

    # ------------------------------------------------------------------
    # Data files
    # ------------------------------------------------------------------

    async def export_collection_data(self, collection: str, path: str) -> int:
        """
        Export one page of a collection to a data file.

        Returns:
            Number of documents exported
        """
        data = await self.client.list_documents(collection, limit=self.client.config.page_size_cap)
        export = DataExport(
            collection=collection,
            exported_at=format_timestamp(utc_now()),
            count=len(data),
            data=data,
        )
        write_structured_file(path, export.model_dump(mode="json"))
        logger.info(f"Exported {export.count} document(s) from '{collection}' to {path}")
        return export.count

    async def import_collection_data(self, path: str, collection: Optional[str] = None) -> int:
        """
        Create one document per item of a data file.

        Args:
            path: Data file written by :meth:`export_collection_data`
            collection: Target collection; defaults to the one recorded in the file

        Returns:
            Number of documents created. Items that fail are logged and skipped.
        """
        try:
            export = DataExport.model_validate(read_structured_file(path))
        except PydanticValidationError as e:
            raise SerializationError(f"Invalid data file {path}: {str(e)}") from e

        target = collection or export.collection
        imported = 0
        for position, item in enumerate(export.data):
            try:
                await self.client.create_document(target, item)
            except FiredocsError as e:
                logger.warning(f"Failed to import item {position} into '{target}': {e}")
                continue
            imported += 1

        skipped = len(export.data) - imported
        if skipped:
            logger.warning(f"Skipped {skipped} item(s) while importing into '{target}'")
        return imported

    async def backup_all_data(self, directory: str) -> Dict[str, int]:
        """
        Export every discovered collection to ``<directory>/<name>_backup.json``.

        Falls back to the ``users`` collection when discovery finds nothing.
        A collection that fails to export is logged and recorded with 0.
        """
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise FileAccessError(f"Failed to create backup directory {directory}: {e.strerror or str(e)}") from e

        names = [info.name for info in await self.collection_manager.list_collections()]
        if not names:
            names = list(BACKUP_FALLBACK_COLLECTIONS)

        results: Dict[str, int] = {}
        for name in names:
            path = os.path.join(directory, f"{name}_backup.json")
            try:
                results[name] = await self.export_collection_data(name, path)
            except FiredocsError as e:
                logger.error(f"Failed to back up '{name}': {e}")
                results[name] = 0
        return results
