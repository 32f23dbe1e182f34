"""Declared schema registry and record validation."""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from firedocs.config.settings import METADATA_COLLECTION
from firedocs.exceptions import ConfigError, NotFoundError, ValidationError
from firedocs.schemas.definitions import Collection, FieldType, RuleType, ValidationRule
from firedocs.schemas.wire import (
    ArrayValue,
    BooleanValue,
    DoubleValue,
    IntegerValue,
    MapValue,
    StringValue,
    TimestampValue,
    WireFields,
    WireValue,
)
from firedocs.services.firestore.client import FirestoreClient, Payload
from firedocs.services.firestore.codec import format_timestamp, is_record, utc_now
from firedocs.services.firestore.field_analyser import is_valid_email, is_valid_url
from firedocs.services.firestore.values import fields_from_dynamic

logger = logging.getLogger(__name__)

# Wire value classes accepted for each declared type
_TYPE_MATCHES = {
    FieldType.STRING: (StringValue,),
    FieldType.INTEGER: (IntegerValue,),
    FieldType.DOUBLE: (DoubleValue,),
    FieldType.BOOLEAN: (BooleanValue,),
    FieldType.TIMESTAMP: (TimestampValue,),
    FieldType.MAP: (MapValue,),
    FieldType.ARRAY: (ArrayValue,),
    # Document references are stored as path strings
    FieldType.REFERENCE: (StringValue,),
}


def _rule_bound(rule: ValidationRule, converter):
    """The rule argument as a number; a missing or non-numeric argument is a ConfigError."""
    if isinstance(rule.value, bool):
        raise ConfigError(f"Invalid value for {rule.rule_type.value} rule on '{rule.field}'")
    try:
        return converter(rule.value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {rule.rule_type.value} rule on '{rule.field}'") from None


def _numeric(value: WireValue):
    if isinstance(value, IntegerValue):
        try:
            return float(value.value)
        except ValueError:
            return None
    if isinstance(value, DoubleValue):
        return value.value
    return None


class SchemaManager:
    """
    Holds declared collection definitions and validates records against them.

    Validation stops at the first violation and raises it; it does not
    collect every problem in a record.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self.client = client
        self._collections: Dict[str, Collection] = {}

    @property
    def collections(self) -> Dict[str, Collection]:
        return dict(self._collections)

    def define_collection(self, collection: Collection):
        self._collections[collection.name] = collection

    def get_collection(self, collection_name: str) -> Collection:
        """
        Raises:
            ConfigError: when the collection is not defined
        """
        collection = self._collections.get(collection_name)
        if collection is None:
            raise ConfigError(f"Collection {collection_name} not defined")
        return collection

    def validate(self, collection_name: str, record: Payload):
        """
        Validate a typed record or dict against a defined collection.

        Checks run in order: required fields, declared types, then rules in
        declaration order.

        Raises:
            ConfigError: when the collection is not defined or a rule is malformed
            ValidationError: on the first violation, naming the field
        """
        collection = self.get_collection(collection_name)
        fields: WireFields = dict(record.to_wire()) if is_record(record) else fields_from_dynamic(record)

        for field_def in collection.fields:
            value = fields.get(field_def.name)
            if value is None:
                if field_def.required:
                    raise ValidationError(f"Required field '{field_def.name}' is missing")
                continue
            if not isinstance(value, _TYPE_MATCHES[field_def.field_type]):
                raise ValidationError(
                    f"Field '{field_def.name}' has incorrect type. Expected {field_def.field_type.value}, "
                    f"got {value.kind}"
                )

        for rule in collection.validation_rules:
            value = fields.get(rule.field)
            if value is not None:
                self.validate_rule(rule, value)

    def validate_rule(self, rule: ValidationRule, value: WireValue):
        """Apply one rule to one value. Rules that do not apply to the value's type pass."""
        name = rule.field
        text = value.value if isinstance(value, StringValue) else None
        number = _numeric(value)

        if rule.rule_type is RuleType.MIN_LENGTH:
            if text is not None and len(text) < _rule_bound(rule, int):
                raise ValidationError(f"Field '{name}' must be at least {rule.value} characters")
        elif rule.rule_type is RuleType.MAX_LENGTH:
            if text is not None and len(text) > _rule_bound(rule, int):
                raise ValidationError(f"Field '{name}' must be at most {rule.value} characters")
        elif rule.rule_type is RuleType.MIN:
            if number is not None and number < _rule_bound(rule, float):
                raise ValidationError(f"Field '{name}' must be at least {rule.value}")
        elif rule.rule_type is RuleType.MAX:
            if number is not None and number > _rule_bound(rule, float):
                raise ValidationError(f"Field '{name}' must be at most {rule.value}")
        elif rule.rule_type is RuleType.REGEX:
            try:
                pattern = re.compile(str(rule.value))
            except re.error as e:
                raise ConfigError(f"Invalid regex for field '{name}': {str(e)}") from e
            if text is not None and not pattern.search(text):
                raise ValidationError(f"Field '{name}' does not match pattern {rule.value}")
        elif rule.rule_type is RuleType.EMAIL:
            if text is not None and not is_valid_email(text):
                raise ValidationError(f"Field '{name}' must be a valid email")
        elif rule.rule_type is RuleType.URL:
            if text is not None and not is_valid_url(text):
                raise ValidationError(f"Field '{name}' must be a valid URL")
        elif rule.rule_type is RuleType.CUSTOM:
            logger.warning(f"Custom rule on field '{name}' ({rule.value}) is not evaluated")

    def required_indexes(self, collection_name: str) -> List[str]:
        """
        Describe the indexes a collection needs.

        Firestore composite indexes are created in the console or with the
        Firebase CLI; this only lists them.
        """
        collection = self.get_collection(collection_name)
        lines = []
        for i, index in enumerate(collection.indexes, start=1):
            parts = ", ".join(f"{field.field_path} {field.order.value}" for field in index.fields)
            suffix = " (unique)" if index.unique else ""
            lines.append(f"Index {i}: {parts}{suffix}")
        return lines

    async def initialize_collections(self) -> int:
        """
        Write one metadata document per defined collection.

        Each document is keyed by the collection name and replaced on every
        run, so initializing twice does not duplicate metadata.

        Returns:
            Number of metadata documents written
        """
        if self.client is None:
            raise ConfigError("SchemaManager has no Firestore client")

        written = 0
        for name, collection in self._collections.items():
            logger.info(f"Initializing collection: {name}")
            await self.client.update_document(METADATA_COLLECTION, name, self._metadata_document(collection), merge=False)
            written += 1
        return written

    async def load_collections_from_metadata(self) -> List[Collection]:
        """
        Register the definitions stored by :meth:`initialize_collections`.

        Metadata documents that do not parse are logged and skipped.
        """
        if self.client is None:
            raise ConfigError("SchemaManager has no Firestore client")

        try:
            documents = await self.client.list_documents(METADATA_COLLECTION, limit=self.client.config.page_size_cap)
        except NotFoundError:
            return []

        loaded = []
        for document in documents:
            try:
                collection = Collection(
                    name=document["name"],
                    description=document.get("description"),
                    fields=json.loads(document.get("fields") or "[]"),
                    indexes=json.loads(document.get("indexes") or "[]"),
                    validation_rules=json.loads(document.get("validation_rules") or "[]"),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable collection metadata: {e}")
                continue
            self.define_collection(collection)
            loaded.append(collection)
        return loaded

    @staticmethod
    def _metadata_document(collection: Collection) -> Dict[str, Any]:
        def dump(items) -> str:
            return json.dumps([item.model_dump(mode="json") for item in items])

        return {
            "name": collection.name,
            "description": collection.description,
            "created_at": format_timestamp(utc_now()),
            "fields": dump(collection.fields),
            "indexes": dump(collection.indexes),
            "validation_rules": dump(collection.validation_rules),
        }
