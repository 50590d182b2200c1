"""
Entity-object repository: read path, write path and geometry queries.

Manifesto:
    Every entity type has its own table, so nothing here is hand-written
    per type. Reads go through :class:`EntitySelectBuilder`; writes split
    an object into inner fields (columns of the primary table) and
    relation fields (join table rows or reverse-FK columns on the target
    table).

    - **Inner write first:** the insert captures the new id before any
      relation is written, relations need it
    - **Full replace:** a relation present in the object replaces every
      stored link of that field (delete then insert), absent relations
      are left alone
    - **Immutable system fields:** id, guid, create date and create user
      are never part of an UPDATE
    - **No commits:** callers own the transaction (``repo.transaction()``)

Architecture:
    ::

        save(entity_type, obj)
          ├── obj.is_new() → insert
          │     INSERT INTO objects_<t> (<non-null inner>) VALUES (...) RETURNING id
          │     per relation present: link targets
          └── else → update
                UPDATE objects_<t> SET <inner present> WHERE id = ?
                per relation present: clear links, link targets

        join table:  DELETE FROM objects_<t>_<rel> WHERE object_id = ?
                     INSERT INTO objects_<t>_<rel> (object_id, related_id) VALUES (?, ?) ×n
        reverse FK:  UPDATE objects_<target> SET <rev> = NULL WHERE <rev> = ?
                     UPDATE objects_<target> SET <rev> = ? WHERE id = ?            ×n

Examples:
    >>> repo = EntityObjectRepository(conn, SQLiteDialect())
    >>> with repo.transaction():
    ...     repo.save(asset_type, obj)
    >>> repo.find_one(asset_type, object_id=obj.id).get_single("label")
    StringAttribute(value='Pump-1')

Tags:
    repository, persistence, relations, geometry, objectspine
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable
from typing import Any

from objectspine.core.errors import FieldNotFoundError, GeometryError, QueryError
from objectspine.core.logging import get_logger
from objectspine.core.repository import BaseRepository
from objectspine.model.entity_type import (
    RELATION_SOURCE_COLUMN,
    RELATION_TARGET_COLUMN,
    EntityType,
    entity_table,
    relation_table,
    standard_fields,
)
from objectspine.model.fields import (
    IMMUTABLE_FIELDS,
    Field,
    FieldType,
    GeometryField,
    RelationField,
    StandardField,
)
from objectspine.objects.attributes import Geometry, GeometryFormat
from objectspine.objects.entity_object import EntityObject, Extent, Point, SearchRecord
from objectspine.objects.filter import Page
from objectspine.objects.query import EntitySelectBuilder
from objectspine.objects.rows import decode_object, decode_record
from objectspine.objects.values import encode_value, full_attribute_value_map, relation_ids

logger = get_logger(__name__)

_NUMBER = r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?"
CENTROID_PATTERN = re.compile(rf"^POINT\(({_NUMBER}) ({_NUMBER})\)$")
EXTENT_PATTERN = re.compile(rf"^BOX\(({_NUMBER}) ({_NUMBER}),({_NUMBER}) ({_NUMBER})\)$")


def parse_centroid(raw: str | None) -> Point | None:
    """Parse ``POINT(x y)``; blank → ``None``, anything else malformed → GeometryError."""
    if raw is None or not raw.strip():
        return None
    match = CENTROID_PATTERN.match(raw.strip())
    if match is None:
        raise GeometryError(f"Centroid doesn't match pattern: {raw}")
    return Point(float(match.group(1)), float(match.group(2)))


def parse_extent(raw: str | None) -> Extent | None:
    """Parse ``BOX(minx miny,maxx maxy)``; blank → ``None``, malformed → GeometryError."""
    if raw is None or not raw.strip():
        return None
    match = EXTENT_PATTERN.match(raw.strip())
    if match is None:
        raise GeometryError(f"Extent doesn't match pattern: {raw}")
    min_x, min_y, max_x, max_y = (float(g) for g in match.groups())
    return Extent(min_x, min_y, max_x, max_y)


class EntityObjectRepository(BaseRepository):
    """Persistence of entity objects over any :class:`Connection`."""

    def new_builder(self, entity_type: EntityType) -> EntitySelectBuilder:
        return EntitySelectBuilder(entity_type, self.dialect)

    # =====================================================================
    # Read path
    # =====================================================================

    def find_all(self, query: EntitySelectBuilder) -> Page[EntityObject]:
        """Rows of *query*; the COUNT runs only when the query is paged."""
        sql, params = query.build()
        objects = [decode_object(query, row) for row in self.query(sql, params)]
        return self._page(query, objects)

    def find_records(self, query: EntitySelectBuilder) -> Page[SearchRecord]:
        sql, params = query.build()
        records = [decode_record(query, row) for row in self.query(sql, params)]
        return self._page(query, records)

    def find_unique_values(self, entity_type: EntityType, code_name: str) -> list[str]:
        """Distinct values of one inner column, as text."""
        f = entity_type.get_field(code_name)
        if f is None or isinstance(f, RelationField):
            raise FieldNotFoundError(code_name).with_context(entity_type=entity_type.code_name)
        rows = self.query(f"SELECT DISTINCT {f.column} AS value FROM {entity_type.table}")
        return [None if r["value"] is None else str(r["value"]) for r in rows]

    def find_one(
        self,
        entity_type: EntityType,
        *,
        object_id: int | None = None,
        guid: str | uuid.UUID | None = None,
        name: str | None = None,
        fields: Iterable[Field | str] | None = None,
        srid: int | None = None,
    ) -> EntityObject | None:
        """One object by id, guid or name with standard fields plus *fields*.

        ``fields=None`` loads every field of the type; pass ``()`` for the
        standard fields only.
        """
        query = self._pre_find(entity_type, entity_type.fields if fields is None else fields)
        if object_id is not None:
            query.with_id(object_id)
        if guid is not None:
            query.with_guid(guid)
        if name is not None:
            query.with_name(name)
        return self.find_one_by(query.srid(srid))

    def find_one_base(
        self,
        entity_type: EntityType,
        *,
        object_id: int | None = None,
        guid: str | uuid.UUID | None = None,
    ) -> EntityObject | None:
        """One object with standard fields only."""
        return self.find_one(entity_type, object_id=object_id, guid=guid, fields=())

    def find_one_by(self, query: EntitySelectBuilder) -> EntityObject | None:
        sql, params = query.build()
        row = self.query_one(sql, params)
        return decode_object(query, row) if row is not None else None

    def count(self, query: EntitySelectBuilder | EntityType) -> int:
        if isinstance(query, EntityType):
            query = self.new_builder(query)
        sql, params = query.count()
        return int(self.query_scalar(sql, params) or 0)

    # =====================================================================
    # Write path
    # =====================================================================

    def save(self, entity_type: EntityType, obj: EntityObject) -> EntityObject:
        """Insert when ``obj.is_new()``, otherwise update."""
        obj.entity_type = entity_type.code_name
        if obj.is_new():
            self._insert(entity_type, obj)
        else:
            self._update(entity_type, obj)
        return obj

    def delete(self, entity_type: EntityType, obj: EntityObject) -> None:
        """Hard-delete the primary row. Relation rows are left to the schema."""
        ph = self.dialect.placeholder(0)
        self.execute(f"DELETE FROM {entity_type.table} WHERE id = {ph}", (obj.id,))
        logger.debug("object_deleted", entity_type=entity_type.code_name, object_id=obj.id)

    def _insert(self, entity_type: EntityType, obj: EntityObject) -> None:
        if obj.guid is None:
            obj.guid = str(uuid.uuid4())
        values = full_attribute_value_map(entity_type, obj)
        values.pop(StandardField.ID)

        inner = {f: v for f, v in values.items() if f.is_inner and v is not None}
        columns = [f.column for f in inner]
        exprs = [self._param_expression(f, v) for f, v in inner.items()]
        params = tuple(encode_value(self.dialect, f, v) for f, v in inner.items())
        sql = (
            f"INSERT INTO {entity_type.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(exprs)}) RETURNING id"
        )
        rows = self.execute(sql, params).fetchall()
        if not rows:
            raise QueryError(f"Insert into {entity_type.table} returned no id")
        obj.id = int(rows[0]["id"])

        for f, v in values.items():
            if isinstance(f, RelationField):
                self._link(obj.id, f, relation_ids(f, v))
        logger.debug("object_created", entity_type=entity_type.code_name, object_id=obj.id)

    def _update(self, entity_type: EntityType, obj: EntityObject) -> None:
        values = full_attribute_value_map(entity_type, obj)
        for f in IMMUTABLE_FIELDS:
            values.pop(f, None)

        inner = {f: v for f, v in values.items() if f.is_inner}
        assignments = [f"{f.column} = {self._param_expression(f, v)}" for f, v in inner.items()]
        params = [encode_value(self.dialect, f, v) for f, v in inner.items()]
        params.append(obj.id)
        ph = self.dialect.placeholder(0)
        self.execute(
            f"UPDATE {entity_type.table} SET {', '.join(assignments)} WHERE id = {ph}",
            tuple(params),
        )

        for f, v in values.items():
            if isinstance(f, RelationField):
                self._unlink(obj.id, f)
                self._link(obj.id, f, relation_ids(f, v))
        logger.debug("object_updated", entity_type=entity_type.code_name, object_id=obj.id)

    def _param_expression(self, f: Field, value: Any) -> str:
        """Placeholder, wrapped in a cast or constructor where the column type needs one."""
        d = self.dialect
        if f.multiple:
            return d.array_param(f.field_type.value)
        if f.field_type is FieldType.ATTACHMENT:
            return d.json_param()
        if isinstance(f, GeometryField) and value is not None:
            fmt = value.type if isinstance(value, Geometry) else GeometryFormat.WKT
            return d.geometry_param(fmt.value, f.crs)
        return d.placeholder(0)

    def _link(self, parent_id: int, f: RelationField, targets: list[int]) -> None:
        if not targets:
            return
        ph = self.dialect.placeholder(0)
        if f.relation_table:
            self.execute_many(
                f"INSERT INTO {relation_table(f)} ({RELATION_SOURCE_COLUMN}, {RELATION_TARGET_COLUMN}) "
                f"VALUES ({ph}, {ph})",
                [(parent_id, target) for target in targets],
            )
        else:
            self.execute_many(
                f"UPDATE {entity_table(f.relates)} SET {f.reverse_column} = {ph} WHERE id = {ph}",
                [(parent_id, target) for target in targets],
            )

    def _unlink(self, parent_id: int, f: RelationField) -> None:
        ph = self.dialect.placeholder(0)
        if f.relation_table:
            self.execute(
                f"DELETE FROM {relation_table(f)} WHERE {RELATION_SOURCE_COLUMN} = {ph}",
                (parent_id,),
            )
        else:
            self.execute(
                f"UPDATE {entity_table(f.relates)} SET {f.reverse_column} = NULL "
                f"WHERE {f.reverse_column} = {ph}",
                (parent_id,),
            )

    # =====================================================================
    # Geometry
    # =====================================================================

    def entity_centroid(self, f: GeometryField, object_id: int, srid: int) -> Point | None:
        sql = self.dialect.centroid_query(entity_table(f.entity_type), f.column)
        row = self._geometry_row(sql, srid, object_id, "Centroid")
        return parse_centroid(row.get("cnt")) if row else None

    def entity_extent(self, f: GeometryField, object_id: int, srid: int) -> Extent | None:
        sql = self.dialect.extent_query(entity_table(f.entity_type), f.column)
        row = self._geometry_row(sql, srid, object_id, "Extent")
        return parse_extent(row.get("ext")) if row else None

    def _geometry_row(self, sql: str, srid: int, object_id: int, label: str) -> dict[str, Any] | None:
        try:
            return self.query_one(sql, (int(srid), int(object_id)))
        except QueryError as e:
            raise GeometryError(f"{label} query sql error", cause=e) from e

    # =====================================================================
    # Internals
    # =====================================================================

    def _pre_find(self, entity_type: EntityType, fields: Iterable[Field | str]) -> EntitySelectBuilder:
        return self.new_builder(entity_type).with_fields(*standard_fields()).with_fields(*fields)

    def _page(self, query: EntitySelectBuilder, content: list) -> Page:
        if query.page is None:
            return Page.unpaged(content)
        return Page(content=content, total=self.count(query), page=query.page.page, size=query.page.size)


__all__ = [
    "CENTROID_PATTERN",
    "EXTENT_PATTERN",
    "EntityObjectRepository",
    "parse_centroid",
    "parse_extent",
]
