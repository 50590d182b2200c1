"""
Shared pytest fixtures for object-spine tests.

This module provides:
- A small schema: ``asset`` with scalar, multi-valued, join-table,
  reverse-FK and geometry fields, plus the ``part`` and ``sensor`` targets
- An in-memory SQLite repository with the tables created
- A fake blob store for attachment flows
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from objectspine.core.connection import SqliteConnection
from objectspine.core.dialect import SQLiteDialect
from objectspine.core.errors import StorageError
from objectspine.model.entity_type import EntityType
from objectspine.model.fields import BaseField, FieldType, GeometryField, RelationField
from objectspine.model.schema import InMemorySchemaProvider, create_entity_tables
from objectspine.objects.attributes import StringAttribute
from objectspine.objects.entity_object import EntityObject
from objectspine.objects.repository import EntityObjectRepository
from objectspine.objects.services import FileMetadata

PART = EntityType(
    "part",
    (BaseField(code_name="serial", field_type=FieldType.STRING),),
    name="Part",
)

SENSOR = EntityType(
    "sensor",
    (BaseField(code_name="kind", field_type=FieldType.STRING),),
    name="Sensor",
)

ASSET = EntityType(
    "asset",
    (
        BaseField(code_name="label", field_type=FieldType.STRING, name="Label", required=True),
        BaseField(code_name="tags", field_type=FieldType.NUMERIC, multiple=True),
        BaseField(code_name="active", field_type=FieldType.BOOLEAN),
        BaseField(code_name="installed", field_type=FieldType.DATE),
        BaseField(code_name="weight", field_type=FieldType.NUMERIC),
        RelationField(code_name="parts", relates="part", multiple=True),
        RelationField(
            code_name="sensors",
            relates="sensor",
            multiple=True,
            relation_table=False,
            reverse_field_code="asset_id",
        ),
        GeometryField(code_name="location", crs=4326),
    ),
    name="Asset",
)

SCHEMA_YAML = """\
apiVersion: objectspine.io/v1
kind: EntityType
metadata:
  name: part
  title: Part
spec:
  fields:
    - code: serial
      type: STRING
---
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
      type: numeric
      multiple: true
    - code: parts
      type: RELATION
      relates: part
      multiple: true
"""


class FakeBlobStore:
    """Blob store keeping metadata in dicts.

    ``upload`` registers a temporary file; ``make_file_permanent`` moves it
    into a bucket.
    """

    def __init__(self) -> None:
        self.temporary: dict[str, FileMetadata] = {}
        self.buckets: dict[str, dict[str, FileMetadata]] = {}
        self.deleted: list[str] = []

    def upload(self, guid: str, name: str, size: int = 100) -> None:
        self.temporary[guid] = FileMetadata(name=name, md5=f"md5-{guid}", size=size, content_type="text/plain")

    def extract_file(self, bucket: str, guid: str) -> Path:
        if guid not in self.buckets.get(bucket, {}):
            raise StorageError(f"No such file: {guid}")
        return Path("/blobs") / bucket / guid

    def get_file_metadata(self, bucket: str, guid: str) -> FileMetadata:
        try:
            return self.buckets[bucket][guid]
        except KeyError:
            raise StorageError(f"No such file: {guid}") from None

    def make_file_permanent(self, guid: str, bucket: str) -> None:
        try:
            meta = self.temporary.pop(guid)
        except KeyError:
            raise StorageError(f"No uploaded file: {guid}") from None
        self.buckets.setdefault(bucket, {})[guid] = meta

    def delete_file(self, bucket: str, guid: str) -> None:
        self.buckets.get(bucket, {}).pop(guid, None)
        self.deleted.append(guid)


@pytest.fixture
def repo() -> Iterator[EntityObjectRepository]:
    """Repository on in-memory SQLite with part, sensor and asset tables."""
    conn = SqliteConnection(":memory:")
    repository = EntityObjectRepository(conn, SQLiteDialect())
    with repository.transaction():
        create_entity_tables(repository, [PART, SENSOR, ASSET])
    yield repository
    conn.close()


@pytest.fixture
def schema() -> InMemorySchemaProvider:
    return InMemorySchemaProvider([PART, SENSOR, ASSET])


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def schema_file(tmp_path: Path) -> Path:
    path = tmp_path / "schema.yaml"
    path.write_text(SCHEMA_YAML, encoding="utf-8")
    return path


@pytest.fixture
def asset_type() -> EntityType:
    return ASSET


@pytest.fixture
def part_type() -> EntityType:
    return PART


@pytest.fixture
def sensor_type() -> EntityType:
    return SENSOR


@pytest.fixture
def save_named(repo: EntityObjectRepository) -> Callable[..., EntityObject]:
    """Insert an object with string attributes: ``save_named(PART, "p1", serial="S-1")``."""

    def _save(entity_type: EntityType, name: str, **values: str) -> EntityObject:
        obj = EntityObject(entity_type=entity_type.code_name, name=name)
        for code, value in values.items():
            obj.set(code, [StringAttribute(value)])
        with repo.transaction():
            return repo.save(entity_type, obj)

    return _save
