"""Entity type descriptor and database naming.

An :class:`EntityType` is immutable once built: field codes are unique
(case-insensitively) and every field knows its owning type, so the query
builder can derive tables and columns from the descriptor alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from objectspine.core.errors import FieldNotFoundError, SchemaError
from objectspine.model.fields import (
    IDENTIFIER,
    BaseField,
    Field,
    GeometryField,
    RelationField,
    StandardField,
)

TABLE_PREFIX = "objects_"
RELATION_SOURCE_COLUMN = "object_id"
RELATION_TARGET_COLUMN = "related_id"


def entity_table(code_name: str) -> str:
    """Primary table of an entity type."""
    return f"{TABLE_PREFIX}{code_name.lower()}"


def relation_table(relation: RelationField) -> str:
    """Join table of a join-table relation field."""
    return f"{TABLE_PREFIX}{relation.entity_type.lower()}_{relation.column}"


@dataclass(frozen=True)
class EntityType:
    """Runtime-defined schema: a named, ordered set of typed fields."""

    code_name: str
    fields: tuple[BaseField, ...] = ()
    name: str = ""
    _by_code: dict[str, BaseField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not IDENTIFIER.match(self.code_name or ""):
            raise SchemaError(f"Entity type code is not an identifier: {self.code_name!r}")
        if not self.name:
            object.__setattr__(self, "name", self.code_name)

        owned: list[BaseField] = []
        by_code: dict[str, BaseField] = {}
        for f in self.fields:
            key = f.code_name.lower()
            if key in by_code:
                raise SchemaError(f"Duplicate field code {f.code_name} in {self.code_name}")
            if f.entity_type.lower() != self.code_name.lower():
                f = replace(f, entity_type=self.code_name)
            by_code[key] = f
            owned.append(f)

        object.__setattr__(self, "fields", tuple(owned))
        object.__setattr__(self, "_by_code", by_code)

    @property
    def table(self) -> str:
        return entity_table(self.code_name)

    def get_field(self, code_name: str | None) -> Field | None:
        """Standard or base field by code (case-insensitive), else ``None``."""
        if not code_name:
            return None
        standard = StandardField.lookup(code_name)
        if standard is not None:
            return standard
        return self._by_code.get(code_name.lower())

    def require_field(self, code_name: str) -> Field:
        """Like :meth:`get_field` but raises :class:`FieldNotFoundError`."""
        found = self.get_field(code_name)
        if found is None:
            raise FieldNotFoundError(code_name).with_context(entity_type=self.code_name)
        return found

    def field_map(self) -> dict[str, BaseField]:
        """Base fields keyed by lower-cased code."""
        return dict(self._by_code)

    @property
    def relation_fields(self) -> list[RelationField]:
        return [f for f in self.fields if isinstance(f, RelationField)]

    @property
    def geometry_fields(self) -> list[GeometryField]:
        return [f for f in self.fields if isinstance(f, GeometryField)]

    @property
    def inner_fields(self) -> list[BaseField]:
        return [f for f in self.fields if f.is_inner]


def standard_fields() -> list[StandardField]:
    """All standard fields, in column order."""
    return list(StandardField)
