"""
Mapping between entity objects and transport documents.

Transport form (JSON-compatible dict)::

    {
      "id": 7,
      "guid": "0b9c...",
      "name": "Pump-1",
      "entityType": "asset",
      "parentId": null,
      "status": 0,
      "metadata": {"createUser": "alice", "createDate": "2026-01-05T10:00:00", ...},
      "attributes": {"label": "Pump-1", "tags": [1.0, 2.0], "site": {"id": 3, ...}},
      "attachments": [{"guid": "...", "name": "manual.pdf", "md5": "...", "size": 1024}]
    }

Reading a document only looks at fields of the entity type. A missing key
leaves the field absent; ``null`` on a multi-valued field is an explicitly
cleared list. Incoming attachments are accepted only with a ``CREATE`` or
``DELETE`` status.

:func:`object_from_feature` and :func:`object_to_feature` convert between
objects and flat foreign records whose values are all text, with temporal
values as epoch milliseconds.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any

from objectspine.core.context import current_user
from objectspine.core.errors import UnprocessableError
from objectspine.model.entity_type import EntityType
from objectspine.model.fields import BaseField, FieldType, RelationField
from objectspine.objects.attributes import (
    AttachmentStatus,
    Attribute,
    EntityReference,
    Geometry,
    GeometryAttribute,
    ObjectAttachment,
    attribute_from_text,
    convert_to_attribute,
)
from objectspine.objects.entity_object import EntityObject, EntityObjectStatus
from objectspine.objects.values import attachments_json, attribute_value_map

# =============================================================================
# Object → dict
# =============================================================================


def reference_to_dict(obj: EntityObject | EntityReference) -> dict[str, Any]:
    """Reference document of an object (id, name, guid, status, entityType)."""
    if isinstance(obj, EntityReference):
        return obj.to_dict()
    return {
        "id": obj.id,
        "entityType": obj.entity_type,
        "name": obj.name,
        "guid": obj.guid,
        "status": obj.status.ordinal,
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, EntityReference):
        return value.to_dict()
    if isinstance(value, Geometry):
        return value.geometry
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, ObjectAttachment):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def object_to_dict(entity_type: EntityType, obj: EntityObject) -> dict[str, Any]:
    m = obj.metadata
    return {
        "id": obj.id,
        "guid": obj.guid,
        "name": obj.name,
        "entityType": obj.entity_type or entity_type.code_name,
        "parentId": obj.parent_id,
        "status": obj.status.ordinal,
        "metadata": {
            "createUser": m.create_user,
            "createDate": _jsonable(m.create_date),
            "changeUser": m.change_user,
            "changeDate": _jsonable(m.change_date),
        },
        "attributes": {
            f.code_name: _jsonable(value) for f, value in attribute_value_map(entity_type, obj).items()
        },
        "attachments": [a.to_dict() for a in obj.attachments or []],
    }


# =============================================================================
# dict → Object
# =============================================================================


def _read_value(f: BaseField, raw: Any) -> Attribute:
    if isinstance(f, RelationField) and raw is not None:
        if isinstance(raw, dict):
            raw = {"entityType": f.relates, **raw}
        elif isinstance(raw, int) and not isinstance(raw, bool):
            raw = {"id": raw, "entityType": f.relates}
        elif isinstance(raw, str):
            try:
                raw = {"entityType": f.relates, **json.loads(raw)}
            except (json.JSONDecodeError, TypeError) as e:
                raise UnprocessableError(f"Malformed relation reference for {f.code_name}", cause=e) from e
    return convert_to_attribute(raw, f.field_type)


def _read_attribute(f: BaseField, raw: Any) -> list[Attribute]:
    if f.multiple:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise UnprocessableError(f"Field {f.code_name} expects a list")
        return [_read_value(f, item) for item in raw]
    return [_read_value(f, raw)]


def read_attachments(raw: Any) -> list[ObjectAttachment] | None:
    """Incoming attachment changes; entries without CREATE/DELETE status are dropped."""
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise UnprocessableError("Failed to parse object attachments")
    result = []
    for item in raw:
        try:
            status = AttachmentStatus(str(item["status"]).upper())
            guid = str(item["guid"])
        except (KeyError, TypeError, ValueError) as e:
            raise UnprocessableError("Failed to parse object attachments", cause=e) from e
        if status in (AttachmentStatus.CREATE, AttachmentStatus.DELETE):
            result.append(ObjectAttachment(guid=guid, size=int(item.get("size") or 0), status=status))
    return result


def object_from_dict(entity_type: EntityType, data: dict[str, Any]) -> EntityObject:
    if not isinstance(data, dict):
        raise UnprocessableError("Object document must be a JSON object")
    try:
        obj = EntityObject(
            entity_type=data.get("entityType") or entity_type.code_name,
            id=int(data.get("id") or 0),
            name=data.get("name"),
            status=EntityObjectStatus.from_ordinal(data.get("status")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise UnprocessableError(f"Failed to parse object: {e}", cause=e) from e

    attributes = data.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise UnprocessableError("Object attributes must be a JSON object")
    supplied = {k.lower(): v for k, v in attributes.items()}
    for f in entity_type.fields:
        key = f.code_name.lower()
        if key in supplied:
            obj.set(f.code_name, _read_attribute(f, supplied[key]))

    obj.attachments = read_attachments(data.get("attachments"))
    return obj


def object_from_json(entity_type: EntityType, text: str) -> EntityObject:
    if text is None or not text.strip():
        raise UnprocessableError("Object json is blank")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise UnprocessableError("Failed to parse object", cause=e) from e
    return object_from_dict(entity_type, data)


def attachments_to_json(attachments: list[ObjectAttachment]) -> str:
    return attachments_json(attachments) or "[]"


def attachments_from_json(text: str) -> list[ObjectAttachment]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise UnprocessableError("Failed to parse json attachments string", cause=e) from e
    if not isinstance(data, list):
        raise UnprocessableError("Attachments json must be a list")
    return [ObjectAttachment.from_dict(item) for item in data]


# =============================================================================
# Foreign records
# =============================================================================


@dataclass
class FeatureRecord:
    """Flat record from a foreign source: every attribute value is text.

    Temporal values are epoch milliseconds; multi-valued fields are a JSON
    array whose elements follow the same rules.
    """

    id: int = 0
    name: str | None = None
    status: int = 0
    geometry: str | None = None
    attributes: dict[str, str | None] = field(default_factory=dict)
    attachments: list[dict[str, Any]] | None = None


@dataclass(frozen=True)
class FeatureField:
    """Column description of a foreign record built from an entity type."""

    code: str
    name: str
    field_type: FieldType
    multiple: bool = False
    required: bool = False


def feature_fields(entity_type: EntityType, geometry_field: str) -> list[FeatureField]:
    """Attribute columns of the records :func:`object_to_feature` produces."""
    geometry_code = geometry_field.lower()
    return [
        FeatureField(f.code_name, f.name or f.code_name, f.field_type, f.multiple, f.required)
        for f in entity_type.fields
        if f.code_name.lower() != geometry_code
    ]


def _epoch_millis_text(value: date | time | datetime) -> str:
    if isinstance(value, time):
        value = datetime.combine(date(1970, 1, 1), value)
    elif not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return str(int(value.timestamp() * 1000))


def _feature_element(f: BaseField, value: Any) -> Any:
    if isinstance(value, EntityReference):
        ref = value.to_dict()
        if not ref["entityType"] and isinstance(f, RelationField):
            ref["entityType"] = f.relates
        return ref
    if isinstance(value, Geometry):
        return value.geometry
    if isinstance(value, (date, time)):
        return _epoch_millis_text(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _feature_text(f: BaseField, value: Any) -> str | None:
    if value is None:
        return None
    if f.multiple:
        return json.dumps([_feature_element(f, v) for v in value])
    element = _feature_element(f, value)
    if isinstance(element, dict):
        return json.dumps(element)
    return str(element)


def object_to_feature(entity_type: EntityType, geometry_field: str, obj: EntityObject) -> FeatureRecord:
    """Flatten *obj* into a text-only record; the inverse of :func:`object_from_feature`.

    Only fields the object carries are written. Attachments are not part of
    a foreign record.
    """
    geometry_code = geometry_field.lower()
    record = FeatureRecord(id=obj.id, name=obj.name, status=obj.status.ordinal)
    for f, value in attribute_value_map(entity_type, obj).items():
        if f.code_name.lower() == geometry_code:
            record.geometry = value.geometry if isinstance(value, Geometry) else value
        else:
            record.attributes[f.code_name] = _feature_text(f, value)
    return record


def _feature_attributes(f: BaseField, text: str | None) -> list[Attribute]:
    if not f.multiple or text is None or not text.strip():
        return [attribute_from_text(text, f.field_type)]
    try:
        items = json.loads(text)
    except json.JSONDecodeError as e:
        raise UnprocessableError(f"Field {f.code_name} expects a JSON array", cause=e) from e
    if not isinstance(items, list):
        raise UnprocessableError(f"Field {f.code_name} expects a JSON array")
    return [
        attribute_from_text(json.dumps(item) if isinstance(item, dict) else str(item), f.field_type)
        for item in items
    ]


def object_from_feature(entity_type: EntityType, geometry_field: str, record: FeatureRecord) -> EntityObject:
    """Convert a foreign record; unknown attribute codes are skipped."""
    obj = EntityObject(
        entity_type=entity_type.code_name,
        id=record.id,
        name=record.name,
        status=EntityObjectStatus.from_ordinal(record.status),
    )
    obj.metadata.changed(current_user())
    obj.attachments = read_attachments(record.attachments)

    by_code = entity_type.field_map()
    for code, text in record.attributes.items():
        f = by_code.get(code.lower())
        if f is not None:
            obj.set(f.code_name, _feature_attributes(f, text))

    geometry = Geometry.parse(record.geometry) if record.geometry and record.geometry.strip() else None
    obj.set(geometry_field, [GeometryAttribute(geometry)])
    return obj


__all__ = [
    "FeatureField",
    "FeatureRecord",
    "attachments_from_json",
    "attachments_to_json",
    "object_from_dict",
    "object_from_feature",
    "feature_fields",
    "object_from_json",
    "object_to_dict",
    "object_to_feature",
    "read_attachments",
    "reference_to_dict",
]
