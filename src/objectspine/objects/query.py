"""
Dynamic SELECT builder over runtime-defined entity types.

Manifesto:
    The schema is only known at runtime, so every statement is generated.
    One builder accumulates the request and renders both the row query and
    the COUNT query from the same FROM/WHERE generation, so a filter means
    the same thing in both.

    - **Bound values only:** every value becomes a placeholder; spliced
      text is limited to schema identifiers and dialect fragments
    - **No row duplication:** relations are aggregated per row through
      correlated subqueries, never joined into the outer FROM
    - **Stable pages:** paged queries add ``t.id`` as the final sort key

Architecture:
    ::

        EntitySelectBuilder(entity_type, dialect)
          .with_fields(...)           standard fields → t.<column>
          .with_id / with_guid / with_name
          .where(condition)           Condition.to_sql(builder)
          .sort(code, SortType)       unknown code → no ORDER BY
          .pageable(PageRequest)      LIMIT/OFFSET
          .aggregate(specs, group_by) switches to grouped projection
          .srid(4326)                 geometry output CRS
              │
              ├── build()  → (sql, params)
              └── count()  → (sql, params)   same FROM/WHERE, no ORDER/LIMIT

    Relation projection (per row)::

        join table:  (SELECT <json agg> FROM objects_<type>_<rel> j
                      JOIN objects_<target> r ON r.id = j.related_id
                      WHERE j.object_id = t.id) AS <rel>
        reverse FK:  (SELECT <json agg> FROM objects_<target> r
                      WHERE r.<reverse> = t.id) AS <rel>

Examples:
    >>> builder = EntitySelectBuilder(asset_type, SQLiteDialect())
    >>> sql, params = (
    ...     builder.with_fields(*standard_fields(), asset_type.get_field("label"))
    ...     .where(Comparison("label", Op.EQ, "Pump-1"))
    ...     .pageable(PageRequest(0, 20))
    ...     .build()
    ... )

Guardrails:
    ❌ DON'T: Format filter values into SQL text
    ✅ DO: Route every value through ``bind()``

Tags:
    query-builder, sql, pagination, aggregation, objectspine
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from objectspine.core.dialect import Dialect, SQLiteDialect
from objectspine.core.errors import UnprocessableError
from objectspine.core.logging import get_logger
from objectspine.model.entity_type import (
    RELATION_SOURCE_COLUMN,
    RELATION_TARGET_COLUMN,
    EntityType,
    entity_table,
    relation_table,
)
from objectspine.model.fields import (
    BaseField,
    Field,
    FieldType,
    GeometryField,
    RelationField,
    StandardField,
)
from objectspine.objects.attributes import convert_value
from objectspine.objects.conditions import Condition
from objectspine.objects.entity_object import EntityObjectStatus
from objectspine.objects.filter import AggregateSpec, PageRequest, SortType
from objectspine.objects.values import encode_scalar

logger = get_logger(__name__)

ALIAS = "t"
RELATION_ALIAS = "r"
JOIN_ALIAS = "j"

# Keys of each aggregated relation element.
REFERENCE_COLUMNS = ("id", "name", "guid", "status")


class EntitySelectBuilder:
    """Accumulates one entity query and renders it for a dialect."""

    def __init__(self, entity_type: EntityType, dialect: Dialect | None = None) -> None:
        self.entity_type = entity_type
        self.dialect: Dialect = dialect or SQLiteDialect()
        self._fields: dict[str, Field] = {}
        self._id: int | None = None
        self._guid: str | None = None
        self._name: str | None = None
        self._condition: Condition | None = None
        self._sort: tuple[Field, SortType] | None = None
        self._page: PageRequest | None = None
        self._aggregates: list[AggregateSpec] = []
        self._group_by: list[BaseField] = []
        self._srid: int | None = None
        self._params: list[Any] = []

    # -- Accumulation ------------------------------------------------------

    def with_fields(self, *fields: Field | str) -> EntitySelectBuilder:
        """Add fields to the projection (deduplicated, first position wins)."""
        for f in fields:
            resolved = self.entity_type.require_field(f) if isinstance(f, str) else f
            self._fields.setdefault(resolved.code_name.lower(), resolved)
        return self

    def with_id(self, object_id: int) -> EntitySelectBuilder:
        self._id = int(object_id)
        return self

    def with_guid(self, guid: str | UUID) -> EntitySelectBuilder:
        self._guid = str(guid)
        return self

    def with_name(self, name: str) -> EntitySelectBuilder:
        self._name = name
        return self

    def where(self, condition: Condition | None) -> EntitySelectBuilder:
        self._condition = condition
        return self

    def sort(self, code: str | None, sort_type: SortType = SortType.ASC) -> EntitySelectBuilder:
        """Sort by one field; codes that do not resolve to a sortable field are ignored."""
        f = self.entity_type.get_field(code)
        if f is None or isinstance(f, RelationField) or f.multiple or f.field_type in (
            FieldType.GEOMETRY,
            FieldType.ATTACHMENT,
        ):
            if code:
                logger.debug("sort_field_ignored", entity_type=self.entity_type.code_name, field=code)
            self._sort = None
            return self
        self._sort = (f, SortType(sort_type))
        return self

    def pageable(self, page: PageRequest | None) -> EntitySelectBuilder:
        self._page = page
        return self

    def aggregate(
        self,
        specs: Iterable[AggregateSpec],
        group_by: Iterable[str] = (),
    ) -> EntitySelectBuilder:
        self._aggregates = list(specs)
        self._group_by = [self._aggregatable(code) for code in group_by]
        for spec in self._aggregates:
            if spec.field is not None:
                self._aggregatable(spec.field)
        return self

    def srid(self, srid: int | None) -> EntitySelectBuilder:
        self._srid = int(srid) if srid is not None else None
        return self

    # -- Introspection -----------------------------------------------------

    @property
    def fields(self) -> list[Field]:
        return list(self._fields.values())

    @property
    def page(self) -> PageRequest | None:
        return self._page

    @property
    def is_aggregate(self) -> bool:
        return bool(self._aggregates)

    @property
    def group_by(self) -> list[BaseField]:
        return list(self._group_by)

    @property
    def aggregates(self) -> list[AggregateSpec]:
        return list(self._aggregates)

    # -- Rendering ---------------------------------------------------------

    def build(self) -> tuple[str, tuple[Any, ...]]:
        """Row query: projection, WHERE, ORDER BY and LIMIT/OFFSET."""
        self._params = []
        projection = self._aggregate_projection() if self.is_aggregate else self._projection()
        sql = f"SELECT {projection} FROM {self.entity_type.table} {ALIAS}"
        sql += self._where_clause()
        if self.is_aggregate and self._group_by:
            sql += " GROUP BY " + ", ".join(self.column(f) for f in self._group_by)
        sql += self._order_clause()
        if self._page is not None:
            sql += f" LIMIT {self.dialect.placeholder(0)} OFFSET {self.dialect.placeholder(0)}"
            self._params.extend([self._page.size, self._page.offset])
        return sql, tuple(self._params)

    def count(self) -> tuple[str, tuple[Any, ...]]:
        """COUNT query over the same FROM/WHERE (groups when aggregating)."""
        self._params = []
        if self.is_aggregate and self._group_by:
            groups = ", ".join(self.column(f) for f in self._group_by)
            sql = (
                f"SELECT COUNT(*) AS cnt FROM (SELECT {groups} FROM {self.entity_type.table} {ALIAS}"
                f"{self._where_clause()} GROUP BY {groups}) g"
            )
        elif self.is_aggregate:
            sql = "SELECT 1 AS cnt"
        else:
            sql = f"SELECT COUNT(*) AS cnt FROM {self.entity_type.table} {ALIAS}{self._where_clause()}"
        return sql, tuple(self._params)

    # -- ConditionContext --------------------------------------------------

    def resolve(self, code: str) -> Field:
        return self.entity_type.require_field(code)

    def column(self, f: Field) -> str:
        return f"{ALIAS}.{f.column}"

    def bind(self, f: Field, value: Any, *, raw: bool = False) -> str:
        """Append a parameter for *value* compared against *f*; return its placeholder."""
        self._params.append(self._encode_condition_value(f, value, raw))
        return self.dialect.placeholder(len(self._params) - 1)

    def ilike(self, column: str, placeholder: str) -> str:
        return self.dialect.ilike(column, placeholder)

    def array_contains(self, column: str, placeholder: str) -> str:
        return self.dialect.array_contains(column, placeholder)

    def relation_exists(self, f: RelationField, target_placeholders: list[str] | None = None) -> str:
        """EXISTS predicate: the current row has related targets (among *target_placeholders*)."""
        if f.relation_table:
            sql = (
                f"EXISTS (SELECT 1 FROM {relation_table(f)} {JOIN_ALIAS} "
                f"WHERE {JOIN_ALIAS}.{RELATION_SOURCE_COLUMN} = {ALIAS}.id"
            )
            target = f"{JOIN_ALIAS}.{RELATION_TARGET_COLUMN}"
        else:
            sql = (
                f"EXISTS (SELECT 1 FROM {entity_table(f.relates)} {RELATION_ALIAS} "
                f"WHERE {RELATION_ALIAS}.{f.reverse_column} = {ALIAS}.id"
            )
            target = f"{RELATION_ALIAS}.id"
        if target_placeholders:
            sql += f" AND {target} IN ({', '.join(target_placeholders)})"
        return sql + ")"

    # -- Internals ---------------------------------------------------------

    def _encode_condition_value(self, f: Field, value: Any, raw: bool) -> Any:
        if raw:
            return None if value is None else str(value)
        if isinstance(f, RelationField):
            return int(getattr(value, "id", value))
        if f is StandardField.STATUS and isinstance(value, (str, EntityObjectStatus)):
            return EntityObjectStatus.from_ordinal(value).ordinal
        if f in (StandardField.ID, StandardField.PARENT_ID, StandardField.STATUS):
            return int(value)
        return encode_scalar(self.dialect, f.field_type, convert_value(value, f.field_type))

    def _aggregatable(self, code: str) -> BaseField:
        f = self.entity_type.require_field(code)
        if isinstance(f, StandardField):
            raise UnprocessableError(f"Cannot aggregate on standard field {code}")
        if isinstance(f, RelationField) or f.multiple or f.field_type in (
            FieldType.GEOMETRY,
            FieldType.ATTACHMENT,
        ):
            raise UnprocessableError(f"Field {code} cannot be grouped or aggregated")
        return f

    def _projection(self) -> str:
        fields = self._fields.values() or [StandardField.ID]
        return ", ".join(self._select_expression(f) for f in fields)

    def _select_expression(self, f: Field) -> str:
        if isinstance(f, RelationField):
            return f"{self._relation_subquery(f)} AS {f.column}"
        if isinstance(f, GeometryField):
            return f"{self.dialect.geometry_select(self.column(f), f.crs, self._srid)} AS {f.column}"
        return f"{self.column(f)} AS {f.column}"

    def _relation_subquery(self, f: RelationField) -> str:
        r = RELATION_ALIAS
        agg = self.dialect.json_agg_object(
            [(key, f"{r}.{key}") for key in REFERENCE_COLUMNS],
            f"{r}.id",
        )
        if f.relation_table:
            return (
                f"(SELECT {agg} FROM {relation_table(f)} {JOIN_ALIAS} "
                f"JOIN {entity_table(f.relates)} {r} ON {r}.id = {JOIN_ALIAS}.{RELATION_TARGET_COLUMN} "
                f"WHERE {JOIN_ALIAS}.{RELATION_SOURCE_COLUMN} = {ALIAS}.id)"
            )
        return f"(SELECT {agg} FROM {entity_table(f.relates)} {r} WHERE {r}.{f.reverse_column} = {ALIAS}.id)"

    def _aggregate_projection(self) -> str:
        parts = [f"{self.column(f)} AS {f.column}" for f in self._group_by]
        for spec in self._aggregates:
            if spec.field is None:
                expr = "COUNT(*)"
            else:
                target = self.column(self.entity_type.require_field(spec.field))
                expr = f"{spec.function.value}({target})"
            parts.append(f"{expr} AS {spec.output_name}")
        return ", ".join(parts)

    def _where_clause(self) -> str:
        ph = self.dialect.placeholder(0)
        clauses: list[str] = []
        if self._id is not None:
            clauses.append(f"{ALIAS}.id = {ph}")
            self._params.append(self._id)
        if self._guid is not None:
            clauses.append(f"{ALIAS}.guid = {ph}")
            self._params.append(self._guid)
        if self._name is not None:
            clauses.append(f"{ALIAS}.name = {ph}")
            self._params.append(self._name)
        if self._condition is not None:
            clauses.append(f"({self._condition.to_sql(self)})")
        return f" WHERE {' AND '.join(clauses)}" if clauses else ""

    def _order_clause(self) -> str:
        keys: list[str] = []
        if self._sort is not None:
            f, direction = self._sort
            if not self.is_aggregate or f in self._group_by:
                keys.append(f"{self.column(f)} {direction.value}")
        if self._page is not None:
            if self.is_aggregate:
                sorted_field = self._sort[0] if self._sort else None
                keys.extend(self.column(f) for f in self._group_by if f != sorted_field)
            else:
                keys.append(f"{ALIAS}.id")
        return f" ORDER BY {', '.join(keys)}" if keys else ""


__all__ = [
    "ALIAS",
    "EntitySelectBuilder",
    "REFERENCE_COLUMNS",
]
