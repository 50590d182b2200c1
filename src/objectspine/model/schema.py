"""Schema provider and DDL for entity types.

Tables per entity type::

    objects_<type>                 standard columns + one column per inner field
                                   (+ reverse-FK columns of relations pointing here)
    objects_<type>_<relation>      (object_id, related_id) per join-table relation
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from objectspine.core.errors import EntityTypeNotFoundError, SchemaError
from objectspine.core.logging import get_logger
from objectspine.core.repository import BaseRepository
from objectspine.model.entity_type import (
    RELATION_SOURCE_COLUMN,
    RELATION_TARGET_COLUMN,
    EntityType,
    entity_table,
    relation_table,
)
from objectspine.model.fields import FieldType, GeometryField

logger = get_logger(__name__)


@runtime_checkable
class SchemaProvider(Protocol):
    """Resolves entity-type codes into immutable descriptors."""

    def get(self, code_name: str) -> EntityType:
        """Return the type or raise :class:`EntityTypeNotFoundError`."""
        ...


class InMemorySchemaProvider:
    """Schema provider over a fixed set of entity types (case-insensitive codes)."""

    def __init__(self, entity_types: Iterable[EntityType] = ()) -> None:
        self._types: dict[str, EntityType] = {}
        for et in entity_types:
            self.register(et)

    def register(self, entity_type: EntityType) -> None:
        key = entity_type.code_name.lower()
        if key in self._types:
            raise SchemaError(f"Entity type already registered: {entity_type.code_name}")
        self._types[key] = entity_type

    def get(self, code_name: str) -> EntityType:
        try:
            return self._types[code_name.lower()]
        except KeyError:
            raise EntityTypeNotFoundError(code_name) from None

    def all(self) -> list[EntityType]:
        return list(self._types.values())

    def __contains__(self, code_name: object) -> bool:
        return isinstance(code_name, str) and code_name.lower() in self._types

    def __len__(self) -> int:
        return len(self._types)


def _standard_columns(repo: BaseRepository) -> list[str]:
    d = repo.dialect
    return [
        f"id {d.id_column()}",
        "name TEXT",
        "status INTEGER NOT NULL DEFAULT 0",
        "parent_id INTEGER",
        "guid TEXT UNIQUE",
        "create_user TEXT",
        f"create_date {d.column_type(FieldType.DATE_TIME)}",
        "change_user TEXT",
        f"change_date {d.column_type(FieldType.DATE_TIME)}",
        f"attachments {d.column_type(FieldType.ATTACHMENT)}",
    ]


def create_entity_tables(repo: BaseRepository, entity_types: Iterable[EntityType]) -> list[str]:
    """Create primary, join and reverse-FK columns for *entity_types*.

    Idempotent: tables use ``IF NOT EXISTS`` and missing reverse-FK columns
    are added with ``ALTER TABLE``. A reverse-FK target whose table does not
    exist yet is skipped with a warning.
    Does not commit; run inside ``repo.transaction()``.

    Returns:
        Names of the tables created or altered.
    """
    types = list(entity_types)
    d = repo.dialect

    reverse_columns: dict[str, list[str]] = {}
    for et in types:
        for rel in et.relation_fields:
            if not rel.relation_table:
                reverse_columns.setdefault(rel.relates.lower(), []).append(rel.reverse_column)

    touched: list[str] = []
    for et in types:
        columns = _standard_columns(repo)
        for f in et.inner_fields:
            srid = f.crs if isinstance(f, GeometryField) else None
            columns.append(f"{f.column} {d.column_type(f.field_type, multiple=f.multiple, srid=srid)}")
        for rev in dict.fromkeys(reverse_columns.get(et.code_name.lower(), [])):
            columns.append(f"{rev} INTEGER")
        repo.execute(f"CREATE TABLE IF NOT EXISTS {et.table} ({', '.join(columns)})")
        touched.append(et.table)

        for rel in et.relation_fields:
            if rel.relation_table:
                table = relation_table(rel)
                repo.execute(
                    f"CREATE TABLE IF NOT EXISTS {table} ("
                    f"{RELATION_SOURCE_COLUMN} INTEGER NOT NULL, "
                    f"{RELATION_TARGET_COLUMN} INTEGER NOT NULL)"
                )
                touched.append(table)

    for target, cols in reverse_columns.items():
        table = entity_table(target)
        if repo.query_one(d.table_exists_query(), (table,)) is None:
            logger.warning("reverse_column_target_missing", table=table, columns=cols)
            continue
        added = False
        for rev in dict.fromkeys(cols):
            if repo.query_one(d.column_exists_query(), (table, rev)) is None:
                repo.execute(f"ALTER TABLE {table} ADD COLUMN {rev} INTEGER")
                added = True
        if added and table not in touched:
            touched.append(table)

    logger.info("entity_tables_created", tables=touched)
    return touched
