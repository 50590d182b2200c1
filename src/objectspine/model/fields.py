"""
Field descriptors for runtime-defined entity types.

A field is either one of the fixed :class:`StandardField` columns every
entity table carries, or a user-defined :class:`BaseField` (with the
:class:`RelationField` and :class:`GeometryField` specialisations).

Manifesto:
    - **Closed type tag:** ``FieldType`` is the single dispatch key for
      conversion, encoding, decoding and validation
    - **Immutable descriptors:** fields are frozen and validated on
      construction, an invalid schema never reaches the query builder
    - **Identifier-safe codes:** codes become column and table names, so
      they are restricted to SQL identifiers

Architecture:
    ::

        Field (duck-typed: code_name, field_type, multiple, column)
        ├── StandardField   ID, NAME, STATUS, PARENT_ID, GUID, CREATE_USER,
        │                   CREATE_DATE, CHANGE_USER, CHANGE_DATE, ATTACHMENTS
        └── BaseField       user-defined, column on the primary table
            ├── RelationField   join table or reverse FK on the related table
            └── GeometryField   geometry column in ``crs``

Examples:
    >>> label = BaseField(code_name="label", field_type=FieldType.STRING, required=True)
    >>> label.column
    'label'
    >>> StandardField.CREATE_DATE.field_type
    <FieldType.DATE_TIME: 'DATE_TIME'>

Tags:
    schema, fields, entity-type, objectspine
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from objectspine.core.errors import SchemaError

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Keywords reserved by SQLite or PostgreSQL that cannot appear as bare
# column names or aliases.
RESERVED_WORDS = frozenset(
    {
        "all", "alter", "analyse", "analyze", "and", "any", "array", "as", "asc",
        "asymmetric", "between", "both", "by", "case", "cast", "check", "collate",
        "column", "constraint", "create", "cross", "current_date", "current_role",
        "current_time", "current_timestamp", "current_user", "default",
        "deferrable", "delete", "desc", "distinct", "do", "drop", "else", "end",
        "escape", "except", "exists", "false", "fetch", "for", "foreign", "from",
        "full", "grant", "group", "having", "in", "index", "initially", "inner",
        "insert", "intersect", "into", "is", "isnull", "join", "lateral",
        "leading", "left", "like", "limit", "localtime", "localtimestamp",
        "natural", "not", "notnull", "null", "offset", "on", "only", "or",
        "order", "outer", "placing", "primary", "references", "returning",
        "right", "select", "session_user", "set", "some", "symmetric", "table",
        "then", "to", "trailing", "transaction", "true", "union", "unique",
        "update", "user", "using", "values", "variadic", "when", "where",
        "window", "with",
    }
)


def is_safe_identifier(name: str | None) -> bool:
    """True when *name* can be spliced into SQL unquoted."""
    return bool(name) and IDENTIFIER.match(name) is not None and name.lower() not in RESERVED_WORDS


class FieldType(str, Enum):
    """Closed set of attribute types."""

    BOOLEAN = "BOOLEAN"
    NUMERIC = "NUMERIC"
    STRING = "STRING"
    DATE = "DATE"
    TIME = "TIME"
    DATE_TIME = "DATE_TIME"
    RELATION = "RELATION"
    GEOMETRY = "GEOMETRY"
    ATTACHMENT = "ATTACHMENT"


class StandardField(Enum):
    """Always-present columns of every entity table."""

    ID = ("id", FieldType.NUMERIC)
    NAME = ("name", FieldType.STRING)
    STATUS = ("status", FieldType.NUMERIC)
    PARENT_ID = ("parent_id", FieldType.NUMERIC)
    GUID = ("guid", FieldType.STRING)
    CREATE_USER = ("create_user", FieldType.STRING)
    CREATE_DATE = ("create_date", FieldType.DATE_TIME)
    CHANGE_USER = ("change_user", FieldType.STRING)
    CHANGE_DATE = ("change_date", FieldType.DATE_TIME)
    ATTACHMENTS = ("attachments", FieldType.ATTACHMENT)

    def __init__(self, code_name: str, field_type: FieldType) -> None:
        self.code_name = code_name
        self.field_type = field_type

    @property
    def column(self) -> str:
        return self.code_name

    @property
    def multiple(self) -> bool:
        return False

    @property
    def required(self) -> bool:
        return False

    @property
    def is_inner(self) -> bool:
        return True

    @classmethod
    def lookup(cls, code_name: str) -> StandardField | None:
        """Case-insensitive lookup by code; ``None`` when not standard."""
        return _STANDARD_BY_CODE.get(code_name.lower())


_STANDARD_BY_CODE = {f.code_name: f for f in StandardField}

# Fields never written by an UPDATE.
IMMUTABLE_FIELDS = frozenset(
    {StandardField.ID, StandardField.GUID, StandardField.CREATE_DATE, StandardField.CREATE_USER}
)


@dataclass(frozen=True, kw_only=True)
class BaseField:
    """User-defined field stored as a column on the entity's own table.

    Attributes:
        code_name: Identifier-safe code, unique per entity type
        field_type: Attribute type tag
        name: Display name used in validation messages (defaults to code)
        multiple: Multi-valued (array column)
        required: Rejected by the validator when null/empty
        entity_type: Code of the owning entity type
    """

    code_name: str
    field_type: FieldType
    name: str = ""
    multiple: bool = False
    required: bool = False
    entity_type: str = ""

    def __post_init__(self) -> None:
        if not IDENTIFIER.match(self.code_name or ""):
            raise SchemaError(f"Field code is not an identifier: {self.code_name!r}")
        if self.code_name.lower() in RESERVED_WORDS:
            raise SchemaError(f"Field code is a reserved SQL word: {self.code_name}")
        object.__setattr__(self, "field_type", FieldType(self.field_type))
        if not self.name:
            object.__setattr__(self, "name", self.code_name)
        if StandardField.lookup(self.code_name) is not None:
            raise SchemaError(f"Field code clashes with a standard field: {self.code_name}")
        self._check_type()

    def _check_type(self) -> None:
        if self.field_type in (FieldType.RELATION, FieldType.GEOMETRY):
            raise SchemaError(
                f"{self.field_type.value} field {self.code_name} must be declared "
                f"as {'RelationField' if self.field_type is FieldType.RELATION else 'GeometryField'}"
            )

    @property
    def column(self) -> str:
        return self.code_name.lower()

    @property
    def is_inner(self) -> bool:
        return self.field_type is not FieldType.RELATION


@dataclass(frozen=True, kw_only=True)
class RelationField(BaseField):
    """Field referencing objects of another entity type.

    Persisted either in a dedicated join table (``relation_table=True``)
    or as ``reverse_field_code`` column on the related type's table.
    """

    field_type: FieldType = FieldType.RELATION
    relates: str = ""
    relation_table: bool = True
    reverse_field_code: str | None = None

    def _check_type(self) -> None:
        if self.field_type is not FieldType.RELATION:
            raise SchemaError(f"RelationField {self.code_name} must have type RELATION")
        if not IDENTIFIER.match(self.relates or ""):
            raise SchemaError(f"Relation {self.code_name} has no valid target entity type")
        if not self.relation_table and not IDENTIFIER.match(self.reverse_field_code or ""):
            raise SchemaError(f"Reverse-FK relation {self.code_name} needs reverse_field_code")
        if self.reverse_field_code and not is_safe_identifier(self.reverse_field_code):
            raise SchemaError(f"Reverse column of {self.code_name} is a reserved SQL word: {self.reverse_field_code}")

    @property
    def reverse_column(self) -> str | None:
        return self.reverse_field_code.lower() if self.reverse_field_code else None


@dataclass(frozen=True, kw_only=True)
class GeometryField(BaseField):
    """Geometry stored in coordinate reference system ``crs``."""

    field_type: FieldType = FieldType.GEOMETRY
    crs: int = 4326

    def _check_type(self) -> None:
        if self.field_type is not FieldType.GEOMETRY:
            raise SchemaError(f"GeometryField {self.code_name} must have type GEOMETRY")
        if self.multiple:
            raise SchemaError(f"Geometry field {self.code_name} cannot be multiple")
        if int(self.crs) <= 0:
            raise SchemaError(f"Geometry field {self.code_name} has invalid CRS {self.crs}")


Field = StandardField | BaseField

