"""Pydantic models and loader for entity-type YAML definitions.

Usage::

    from objectspine.model.loader import load_entity_types

    types = load_entity_types("schema/")          # file or directory
    provider = InMemorySchemaProvider(types)

Example YAML (several documents per file are allowed)::

    apiVersion: objectspine.io/v1
    kind: EntityType
    metadata:
      name: asset
      title: Asset
    spec:
      fields:
        - code: label
          type: STRING
          required: true
        - code: tags
          type: NUMERIC
          multiple: true
        - code: location
          type: GEOMETRY
          crs: 3857
        - code: parts
          type: RELATION
          relates: part
          multiple: true
        - code: site
          type: RELATION
          relates: site
          relation_table: false
          reverse_field: asset_id

Manifesto:
    Schema owners should be able to declare entity types without writing
    Python. The YAML path produces the same immutable ``EntityType`` that
    code-first callers build by hand.

Tags:
    objectspine, schema, yaml, declarative, pydantic
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from objectspine.core.errors import SchemaError
from objectspine.core.logging import get_logger
from objectspine.model.entity_type import EntityType
from objectspine.model.fields import BaseField, FieldType, GeometryField, RelationField

logger = get_logger(__name__)

API_VERSION = "objectspine.io/v1"


class FieldSpec(BaseModel):
    """One field of an entity type."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(..., min_length=1, description="Field code (SQL identifier)")
    name: str = Field(default="", description="Display name")
    type: FieldType = Field(..., description="Field type")
    multiple: bool = False
    required: bool = False
    relates: str | None = Field(default=None, description="Target entity type (RELATION)")
    relation_table: bool = Field(default=True, description="Join table (true) or reverse FK (false)")
    reverse_field: str | None = Field(default=None, description="Reverse FK column on the target")
    crs: int | None = Field(default=None, gt=0, description="SRID (GEOMETRY)")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    def to_field(self, default_srid: int) -> BaseField:
        if self.type is FieldType.RELATION:
            return RelationField(
                code_name=self.code,
                name=self.name,
                multiple=self.multiple,
                required=self.required,
                relates=self.relates or "",
                relation_table=self.relation_table,
                reverse_field_code=self.reverse_field,
            )
        if self.type is FieldType.GEOMETRY:
            return GeometryField(
                code_name=self.code,
                name=self.name,
                required=self.required,
                multiple=self.multiple,
                crs=self.crs or default_srid,
            )
        return BaseField(
            code_name=self.code,
            field_type=self.type,
            name=self.name,
            multiple=self.multiple,
            required=self.required,
        )


class EntityTypeMetadataSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Entity type code")
    title: str = Field(default="", description="Display name")
    description: str = ""


class EntityTypeSpecSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    field_specs: list[FieldSpec] = Field(default_factory=list, alias="fields")

    @field_validator("field_specs")
    @classmethod
    def validate_unique_codes(cls, v: list[FieldSpec]) -> list[FieldSpec]:
        """Ensure field codes are unique (case-insensitive)."""
        codes = [f.code.lower() for f in v]
        if len(codes) != len(set(codes)):
            duplicates = {c for c in codes if codes.count(c) > 1}
            raise ValueError(f"Duplicate field codes: {duplicates}")
        return v


class EntityTypeSpec(BaseModel):
    """Root model of one YAML document."""

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["objectspine.io/v1"] = Field(default=API_VERSION)
    kind: Literal["EntityType"] = Field(default="EntityType")
    metadata: EntityTypeMetadataSpec
    spec: EntityTypeSpecSection = Field(default_factory=EntityTypeSpecSection)

    def to_entity_type(self, default_srid: int = 4326) -> EntityType:
        return EntityType(
            code_name=self.metadata.name,
            name=self.metadata.title,
            fields=tuple(f.to_field(default_srid) for f in self.spec.field_specs),
        )


def parse_entity_types(content: str, *, default_srid: int = 4326, source: str = "<string>") -> list[EntityType]:
    """Parse every YAML document in *content* into an entity type.

    Raises:
        SchemaError: Invalid YAML or a document not matching the schema.
    """
    try:
        documents = [d for d in yaml.safe_load_all(content) if d is not None]
    except yaml.YAMLError as e:
        raise SchemaError(f"Invalid YAML in {source}: {e}", cause=e) from e

    result = []
    for doc in documents:
        try:
            spec = EntityTypeSpec.model_validate(doc)
        except ValidationError as e:
            raise SchemaError(f"Invalid entity type in {source}: {e}", cause=e) from e
        result.append(spec.to_entity_type(default_srid))
    return result


def load_entity_types(path: Path | str, *, default_srid: int = 4326) -> list[EntityType]:
    """Load entity types from a YAML file or every ``*.yaml``/``*.yml`` in a directory.

    Raises:
        FileNotFoundError: If *path* does not exist
        SchemaError: If any document is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema path not found: {path}")

    files = [path] if path.is_file() else sorted(
        p for p in path.rglob("*") if p.suffix in (".yaml", ".yml") and p.is_file()
    )

    types: list[EntityType] = []
    for file in files:
        loaded = parse_entity_types(
            file.read_text(encoding="utf-8"),
            default_srid=default_srid,
            source=str(file),
        )
        logger.debug("entity_types_loaded", path=str(file), count=len(loaded))
        types.extend(loaded)

    logger.info("schema_loaded", path=str(path), entity_types=[t.code_name for t in types])
    return types


def entity_type_to_yaml(entity_type: EntityType) -> str:
    """Serialize an entity type back to a YAML document."""
    fields = []
    for f in entity_type.fields:
        item: dict[str, object] = {"code": f.code_name, "type": f.field_type.value}
        if f.name != f.code_name:
            item["name"] = f.name
        if f.multiple:
            item["multiple"] = True
        if f.required:
            item["required"] = True
        if isinstance(f, RelationField):
            item["relates"] = f.relates
            if not f.relation_table:
                item["relation_table"] = False
                item["reverse_field"] = f.reverse_field_code
        if isinstance(f, GeometryField):
            item["crs"] = f.crs
        fields.append(item)

    data = {
        "apiVersion": API_VERSION,
        "kind": "EntityType",
        "metadata": {"name": entity_type.code_name, "title": entity_type.name},
        "spec": {"fields": fields},
    }
    return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
