"""
Attribute model: typed values for entity-object fields.

Every field value is carried as a list of :class:`Attribute`, even when the
field is single-valued (list length <= 1). Each variant wraps exactly one
payload of the type named by its ``FieldType`` tag, and every variant has a
``None`` payload meaning "no value".

Manifesto:
    - **One dispatch table:** conversion is keyed by ``FieldType``, never
      by chains of type checks spread across the builder and repository
    - **Null is a value:** converting ``None`` yields a variant holding
      ``None``, not an error
    - **Unknown tags are bugs:** a ``FieldType`` missing from the tables
      raises :class:`UnsupportedFieldTypeError`

Architecture:
    ::

        convert_to_attribute(raw, field_type)
              │   raw: typed object | ISO text | JSON text | dict
              ▼
        _CONVERTERS[field_type](raw) ──► payload ──► ATTRIBUTE_TYPES[field_type](payload)

        attribute_from_text(text, field_type)
              │   bulk entry point: epoch-millisecond text for temporal types
              ▼
        same tables, temporal types parsed from epoch ms

Examples:
    >>> convert_to_attribute("12.5", FieldType.NUMERIC)
    NumericAttribute(value=12.5)
    >>> convert_to_attribute("true", FieldType.BOOLEAN).value
    True
    >>> convert_to_attribute(None, FieldType.DATE)
    DateAttribute(value=None)
    >>> attribute_from_text("86400000", FieldType.DATE).value
    datetime.date(1970, 1, 2)

Guardrails:
    ❌ DON'T: Branch on field types outside this module for conversion
    ✅ DO: Add the variant and its converter to the tables below

Tags:
    attributes, conversion, field-types, objectspine
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from objectspine.core.errors import UnprocessableError, UnsupportedFieldTypeError
from objectspine.model.fields import FieldType


class GeometryFormat(str, Enum):
    WKT = "WKT"
    GEOJSON = "GEOJSON"


@dataclass(frozen=True)
class Geometry:
    """Geometry payload as text (WKT or GeoJSON)."""

    geometry: str
    type: GeometryFormat = GeometryFormat.WKT

    @classmethod
    def parse(cls, text: str) -> Geometry:
        """Detect the format: a leading ``{`` means GeoJSON."""
        stripped = text.strip()
        fmt = GeometryFormat.GEOJSON if stripped.startswith("{") else GeometryFormat.WKT
        return cls(stripped, fmt)


@dataclass(frozen=True)
class EntityReference:
    """Reference to another entity object, the payload of relation attributes."""

    id: int
    entity_type: str | None = None
    name: str | None = None
    guid: str | None = None
    status: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "name": self.name,
            "guid": self.guid,
            "status": self.status,
        }


class AttachmentStatus(str, Enum):
    """Mutation-time status of an attachment. Persisted attachments carry none."""

    CREATE = "CREATE"
    DELETE = "DELETE"
    NONE = "NONE"


@dataclass
class ObjectAttachment:
    """File attached to an entity object; the blob itself lives in the blob store."""

    guid: str
    name: str | None = None
    md5: str | None = None
    size: int = 0
    content_type: str | None = None
    create_user: str | None = None
    status: AttachmentStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        """Persisted form (no status)."""
        data = asdict(self)
        data.pop("status")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectAttachment:
        if not isinstance(data, dict) or not data.get("guid"):
            raise UnprocessableError(f"Attachment without guid: {data!r}")
        status = data.get("status")
        return cls(
            guid=str(data["guid"]),
            name=data.get("name"),
            md5=data.get("md5"),
            size=int(data.get("size") or 0),
            content_type=data.get("content_type", data.get("contentType")),
            create_user=data.get("create_user", data.get("createUser")),
            status=AttachmentStatus(status) if status else None,
        )


# =============================================================================
# Attribute variants
# =============================================================================


@dataclass(frozen=True)
class Attribute:
    """One typed value of a field; ``value is None`` means no value."""

    field_type: ClassVar[FieldType]
    value: Any = None

    @property
    def is_empty(self) -> bool:
        return self.value is None


@dataclass(frozen=True)
class BooleanAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.BOOLEAN


@dataclass(frozen=True)
class NumericAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.NUMERIC


@dataclass(frozen=True)
class StringAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.STRING


@dataclass(frozen=True)
class DateAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.DATE


@dataclass(frozen=True)
class TimeAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.TIME


@dataclass(frozen=True)
class DateTimeAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.DATE_TIME


@dataclass(frozen=True)
class RelationAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.RELATION


@dataclass(frozen=True)
class GeometryAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.GEOMETRY


@dataclass(frozen=True)
class AttachmentAttribute(Attribute):
    field_type: ClassVar[FieldType] = FieldType.ATTACHMENT


ATTRIBUTE_TYPES: dict[FieldType, type[Attribute]] = {
    cls.field_type: cls
    for cls in (
        BooleanAttribute,
        NumericAttribute,
        StringAttribute,
        DateAttribute,
        TimeAttribute,
        DateTimeAttribute,
        RelationAttribute,
        GeometryAttribute,
        AttachmentAttribute,
    )
}


def create_attribute(field_type: FieldType, value: Any = None) -> Attribute:
    """Wrap an already-typed payload in the variant for *field_type*."""
    try:
        cls = ATTRIBUTE_TYPES[field_type]
    except KeyError:
        raise UnsupportedFieldTypeError(f"Unsupported field type: {field_type!r}") from None
    return cls(value)


# =============================================================================
# Converters: raw value → payload
# =============================================================================


def _blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _to_boolean(raw: Any) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
        return raw.strip().lower() == "true"
    raise ValueError(raw)


def _to_numeric(raw: Any) -> float | None:
    if isinstance(raw, bool):
        raise ValueError(raw)
    if isinstance(raw, (int, float, Decimal, str)):
        return float(raw)
    raise ValueError(raw)


def _to_string(raw: Any) -> str | None:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float, bool, Decimal)):
        return str(raw)
    raise ValueError(raw)


def _to_date(raw: Any) -> date | None:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        return date.fromisoformat(raw.strip())
    raise ValueError(raw)


def _to_time(raw: Any) -> time | None:
    if isinstance(raw, datetime):
        return raw.time()
    if isinstance(raw, time):
        return raw
    if isinstance(raw, str):
        return time.fromisoformat(raw.strip())
    raise ValueError(raw)


def _to_date_time(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime.combine(raw, time())
    if isinstance(raw, str):
        return datetime.fromisoformat(raw.strip())
    raise ValueError(raw)


def _to_relation(raw: Any) -> EntityReference | None:
    if isinstance(raw, EntityReference):
        return raw
    if isinstance(raw, str):
        raw = json.loads(raw)
    if isinstance(raw, dict):
        entity_type = raw.get("entityType", raw.get("entity_type"))
        if raw.get("id") is None or not entity_type:
            raise ValueError("relation reference needs entityType and id")
        return EntityReference(
            id=int(raw["id"]),
            entity_type=str(entity_type),
            name=raw.get("name"),
            guid=str(raw["guid"]) if raw.get("guid") is not None else None,
            status=raw.get("status"),
        )
    if hasattr(raw, "id") and hasattr(raw, "entity_type"):
        status = getattr(raw, "status", None)
        guid = getattr(raw, "guid", None)
        return EntityReference(
            id=int(raw.id),
            entity_type=raw.entity_type,
            name=getattr(raw, "name", None),
            guid=str(guid) if guid is not None else None,
            status=getattr(status, "ordinal", status),
        )
    raise ValueError(raw)


def _to_geometry(raw: Any) -> Geometry | None:
    if isinstance(raw, Geometry):
        return raw
    if isinstance(raw, dict):
        return Geometry(json.dumps(raw), GeometryFormat.GEOJSON)
    if isinstance(raw, str):
        return Geometry.parse(raw)
    raise ValueError(raw)


def _to_attachments(raw: Any) -> tuple[ObjectAttachment, ...] | None:
    if isinstance(raw, str):
        raw = json.loads(raw)
    if isinstance(raw, (list, tuple)):
        return tuple(
            a if isinstance(a, ObjectAttachment) else ObjectAttachment.from_dict(a) for a in raw
        )
    raise ValueError(raw)


_CONVERTERS: dict[FieldType, Callable[[Any], Any]] = {
    FieldType.BOOLEAN: _to_boolean,
    FieldType.NUMERIC: _to_numeric,
    FieldType.STRING: _to_string,
    FieldType.DATE: _to_date,
    FieldType.TIME: _to_time,
    FieldType.DATE_TIME: _to_date_time,
    FieldType.RELATION: _to_relation,
    FieldType.GEOMETRY: _to_geometry,
    FieldType.ATTACHMENT: _to_attachments,
}


def convert_value(raw: Any, field_type: FieldType) -> Any:
    """Convert *raw* to the payload type of *field_type*.

    Raises:
        UnprocessableError: *raw* cannot be read as *field_type*
        UnsupportedFieldTypeError: *field_type* has no converter
    """
    try:
        converter = _CONVERTERS[field_type]
    except KeyError:
        raise UnsupportedFieldTypeError(f"Unsupported field type: {field_type!r}") from None
    if raw is None or (field_type is not FieldType.STRING and _blank(raw)):
        return None
    try:
        return converter(raw)
    except UnprocessableError:
        raise
    except (ValueError, TypeError) as e:
        raise UnprocessableError(
            f"Cannot convert {raw!r} to {field_type.value}", cause=e
        ) from e


def convert_to_attribute(raw: Any, field_type: FieldType) -> Attribute:
    """Produce the attribute variant for *field_type* from a raw value."""
    if isinstance(raw, Attribute):
        if raw.field_type is not field_type:
            raise UnprocessableError(
                f"Cannot use {raw.field_type.value} attribute as {field_type.value}"
            )
        return raw
    return create_attribute(field_type, convert_value(raw, field_type))


def _epoch_millis(text: str) -> datetime:
    return datetime.fromtimestamp(int(text.strip()) / 1000, tz=UTC).replace(tzinfo=None)


_TEXT_TEMPORAL: dict[FieldType, Callable[[datetime], Any]] = {
    FieldType.DATE: datetime.date,
    FieldType.TIME: datetime.time,
    FieldType.DATE_TIME: lambda d: d,
}


def attribute_from_text(text: str | None, field_type: FieldType) -> Attribute:
    """Bulk-conversion entry point: temporal types are epoch-millisecond text.

    Blank text yields an empty attribute; other types use the regular
    conversion rules.
    """
    if text is None or not str(text).strip():
        return create_attribute(field_type)
    if field_type in _TEXT_TEMPORAL:
        try:
            return create_attribute(field_type, _TEXT_TEMPORAL[field_type](_epoch_millis(str(text))))
        except (ValueError, OverflowError, OSError) as e:
            raise UnprocessableError(
                f"Cannot convert epoch milliseconds {text!r} to {field_type.value}", cause=e
            ) from e
    return convert_to_attribute(text, field_type)


__all__ = [
    "ATTRIBUTE_TYPES",
    "AttachmentAttribute",
    "AttachmentStatus",
    "Attribute",
    "BooleanAttribute",
    "DateAttribute",
    "DateTimeAttribute",
    "EntityReference",
    "Geometry",
    "GeometryAttribute",
    "GeometryFormat",
    "NumericAttribute",
    "ObjectAttachment",
    "RelationAttribute",
    "StringAttribute",
    "TimeAttribute",
    "attribute_from_text",
    "convert_to_attribute",
    "convert_value",
    "create_attribute",
]
