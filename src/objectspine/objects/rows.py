"""Row decoding: driver rows → :class:`EntityObject` / :class:`SearchRecord`.

SQLite returns multi-valued columns, relation aggregates and attachment
lists as JSON text; psycopg2 returns native lists and decoded JSON. Both
shapes go through the same path: text is parsed first, then each element
is converted with the attribute tables.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from objectspine.core.errors import UnprocessableError
from objectspine.model.fields import Field, FieldType, RelationField, StandardField
from objectspine.objects.attributes import Attribute, ObjectAttachment, convert_to_attribute, convert_value
from objectspine.objects.entity_object import EntityObject, SearchRecord
from objectspine.objects.query import EntitySelectBuilder


def _json(value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise UnprocessableError(f"Malformed JSON column value: {value!r}", cause=e) from e
    return value


def decode_attachments(value: Any) -> list[ObjectAttachment]:
    data = _json(value)
    if not data:
        return []
    return [ObjectAttachment.from_dict(item) for item in data]


def _decode_standard(f: StandardField, value: Any) -> Any:
    if value is None:
        return [] if f is StandardField.ATTACHMENTS else None
    match f:
        case StandardField.CREATE_DATE | StandardField.CHANGE_DATE:
            return value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
        case StandardField.ATTACHMENTS:
            return decode_attachments(value)
        case StandardField.GUID | StandardField.NAME | StandardField.CREATE_USER | StandardField.CHANGE_USER:
            return str(value)
        case _:
            return int(value)


def _decode_relation(f: RelationField, value: Any) -> list[Attribute]:
    items = _json(value) or []
    refs = [
        convert_to_attribute({**item, "entityType": f.relates}, FieldType.RELATION)
        for item in items
        if item and item.get("id") is not None
    ]
    return sorted(refs, key=lambda a: a.value.id)


def decode_field(f: Field, value: Any) -> list[Attribute]:
    """Attribute list of one selected base field (``[]`` when the column is null)."""
    if isinstance(f, RelationField):
        return _decode_relation(f, value)
    if value is None:
        return []
    if f.multiple:
        return [convert_to_attribute(v, f.field_type) for v in _json(value)]
    return [convert_to_attribute(value, f.field_type)]


def decode_object(builder: EntitySelectBuilder, row: dict[str, Any]) -> EntityObject:
    obj = EntityObject(entity_type=builder.entity_type.code_name)
    for f in builder.fields:
        value = row.get(f.column)
        if isinstance(f, StandardField):
            obj.set_standard_field_value(f, _decode_standard(f, value))
        else:
            obj.set(f.code_name, decode_field(f, value))
    return obj


def decode_record(builder: EntitySelectBuilder, row: dict[str, Any]) -> SearchRecord:
    values: dict[str, Any] = {}
    for f in builder.group_by:
        values[f.code_name] = convert_value(row.get(f.column), f.field_type)
    for spec in builder.aggregates:
        values[spec.output_name] = row.get(spec.output_name)
    return SearchRecord(values)


__all__ = [
    "decode_attachments",
    "decode_field",
    "decode_object",
    "decode_record",
]
