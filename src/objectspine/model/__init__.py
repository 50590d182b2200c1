"""Entity-type model: field descriptors, entity types, schema loading and DDL."""

from objectspine.model.entity_type import EntityType, entity_table, relation_table
from objectspine.model.fields import (
    BaseField,
    FieldType,
    GeometryField,
    RelationField,
    StandardField,
)
from objectspine.model.loader import load_entity_types
from objectspine.model.schema import InMemorySchemaProvider, SchemaProvider, create_entity_tables

__all__ = [
    "BaseField",
    "EntityType",
    "FieldType",
    "GeometryField",
    "InMemorySchemaProvider",
    "RelationField",
    "SchemaProvider",
    "StandardField",
    "create_entity_tables",
    "entity_table",
    "load_entity_types",
    "relation_table",
]
