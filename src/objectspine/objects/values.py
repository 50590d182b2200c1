"""Resolved field → value maps and driver-value encoding.

The validator and the write path both work on plain values rather than
attribute lists:

- single-valued field → the payload of the first attribute (or ``None``)
- multi-valued field → list of payloads (or ``None`` when the list is empty)

:func:`encode_value` turns one payload into the value bound for the driver;
it is the only place the write path branches on ``FieldType``.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from objectspine.core.dialect import Dialect
from objectspine.model.entity_type import EntityType
from objectspine.model.fields import BaseField, Field, FieldType, StandardField
from objectspine.objects.attributes import (
    Attribute,
    EntityReference,
    Geometry,
    ObjectAttachment,
)
from objectspine.objects.entity_object import EntityObject


def field_value(f: Field, values: list[Attribute] | None) -> Any:
    """Collapse an attribute list to the plain value of *f*."""
    if not values:
        return None
    payloads = [a.value for a in values if a.value is not None]
    if f.multiple:
        return payloads or None
    return payloads[0] if payloads else None


def attribute_value_map(entity_type: EntityType, obj: EntityObject) -> dict[BaseField, Any]:
    """Base fields the object carries (present in its attribute map)."""
    return {
        f: field_value(f, obj.attributes[f.code_name])
        for f in entity_type.fields
        if f.code_name in obj.attributes
    }


def full_attribute_value_map(entity_type: EntityType, obj: EntityObject) -> dict[Field, Any]:
    """Every standard field plus the base fields the object carries."""
    result: dict[Field, Any] = {f: obj.get_standard_field_value(f) for f in StandardField}
    result.update(attribute_value_map(entity_type, obj))
    return result


def attachments_json(attachments: list[ObjectAttachment] | tuple[ObjectAttachment, ...] | None) -> str | None:
    """Persisted JSON form of an attachment list (no status)."""
    if attachments is None:
        return None
    return json.dumps([a.to_dict() for a in attachments])


def _relation_id(value: Any) -> int:
    if isinstance(value, EntityReference):
        return value.id
    return int(getattr(value, "id", value))


def _encode_geometry(value: Any) -> str:
    return value.geometry if isinstance(value, Geometry) else str(value)


_ENCODERS: dict[FieldType, Callable[[Dialect, Any], Any]] = {
    FieldType.BOOLEAN: lambda d, v: v,
    FieldType.NUMERIC: lambda d, v: v,
    FieldType.STRING: lambda d, v: v,
    FieldType.DATE: lambda d, v: d.encode_temporal(v),
    FieldType.TIME: lambda d, v: d.encode_temporal(v),
    FieldType.DATE_TIME: lambda d, v: d.encode_temporal(v),
    FieldType.RELATION: lambda d, v: _relation_id(v),
    FieldType.GEOMETRY: lambda d, v: _encode_geometry(v),
    FieldType.ATTACHMENT: lambda d, v: attachments_json(v),
}


def encode_scalar(dialect: Dialect, field_type: FieldType, value: Any) -> Any:
    """Driver value for one payload of *field_type*."""
    if value is None:
        return None
    return _ENCODERS[field_type](dialect, value)


def encode_value(dialect: Dialect, f: Field, value: Any) -> Any:
    """Driver value for *value* of field *f* (``None`` stays ``None``)."""
    if value is None:
        return None
    if f.multiple:
        return dialect.encode_array([encode_scalar(dialect, f.field_type, v) for v in value])
    return encode_scalar(dialect, f.field_type, value)


def relation_ids(f: Field, value: Any) -> list[int]:
    """Target ids of a relation value, de-duplicated in first-seen order."""
    if value is None:
        return []
    items = value if f.multiple else [value]
    return list(dict.fromkeys(_relation_id(v) for v in items))


__all__ = [
    "attachments_json",
    "attribute_value_map",
    "encode_scalar",
    "encode_value",
    "field_value",
    "full_attribute_value_map",
    "relation_ids",
]
