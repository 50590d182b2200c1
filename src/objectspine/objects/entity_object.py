"""
In-memory representation of one entity-object record.

An :class:`EntityObject` carries identity, lifecycle status, audit
metadata, attachments and an :class:`AttributeMap` from field code to an
ordered list of :class:`~objectspine.objects.attributes.Attribute`.

Manifesto:
    - **Absent is not empty:** a code missing from the map means "not
      loaded / not supplied"; an empty list means "explicitly cleared"
    - **Case-insensitive codes:** ``obj.get("Label")`` and
      ``obj.get("label")`` address the same entry
    - **Two states:** ``ACTIVE`` and ``INACTIVE`` are the only statuses;
      transitions are owned by the manager

Examples:
    >>> obj = EntityObject(entity_type="asset", name="Pump-1")
    >>> obj.set("label", [StringAttribute("Pump-1")])
    >>> obj.get_single("LABEL")
    StringAttribute(value='Pump-1')
    >>> obj.is_new()
    True

Tags:
    entity-object, attributes, lifecycle, objectspine
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from objectspine.core.errors import UnprocessableError, UnsupportedFieldTypeError
from objectspine.model.fields import StandardField
from objectspine.objects.attributes import (
    AttachmentStatus,
    Attribute,
    ObjectAttachment,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in metadata columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class EntityObjectStatus(Enum):
    """Lifecycle state; the value is the persisted ordinal."""

    ACTIVE = 0
    INACTIVE = 1

    @property
    def ordinal(self) -> int:
        return self.value

    @classmethod
    def from_ordinal(cls, value: int | str | None) -> EntityObjectStatus:
        if value is None:
            return cls.ACTIVE
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, str) and not value.strip().isdigit():
                return cls[value.strip().upper()]
            return cls(int(value))
        except (KeyError, ValueError) as e:
            raise UnprocessableError(f"Unknown object status: {value!r}", cause=e) from e


@dataclass
class Metadata:
    """Creator/editor audit trail."""

    create_user: str | None = None
    create_date: datetime | None = None
    change_user: str | None = None
    change_date: datetime | None = None

    @classmethod
    def for_user(cls, user: str) -> Metadata:
        now = utcnow()
        return cls(create_user=user, create_date=now, change_user=user, change_date=now)

    def changed(self, user: str) -> None:
        self.change_user = user
        self.change_date = utcnow()


class AttributeMap(MutableMapping[str, list[Attribute]]):
    """Ordered mapping keyed by lower-cased field code."""

    def __init__(self, data: Iterable[tuple[str, list[Attribute]]] | dict | None = None) -> None:
        self._data: dict[str, list[Attribute]] = {}
        if data:
            items = data.items() if isinstance(data, dict) else data
            for key, value in items:
                self[key] = value

    def __getitem__(self, key: str) -> list[Attribute]:
        return self._data[key.lower()]

    def __setitem__(self, key: str, value: list[Attribute]) -> None:
        self._data[key.lower()] = list(value)

    def __delitem__(self, key: str) -> None:
        del self._data[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"AttributeMap({self._data!r})"


@dataclass
class EntityObject:
    """One record of a runtime-defined entity type."""

    entity_type: str = ""
    id: int = 0
    guid: str | None = None
    name: str | None = None
    status: EntityObjectStatus = EntityObjectStatus.ACTIVE
    metadata: Metadata = field(default_factory=Metadata)
    attributes: AttributeMap = field(default_factory=AttributeMap)
    parent_id: int | None = None
    attachments: list[ObjectAttachment] | None = None
    check_rule: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.attributes, AttributeMap):
            self.attributes = AttributeMap(self.attributes)

    def is_new(self) -> bool:
        return self.id is None or self.id <= 0

    # -- Attribute access --------------------------------------------------

    def get(self, code: str) -> list[Attribute] | None:
        """Values of *code*, or ``None`` when the field is absent."""
        return self.attributes.get(code)

    def get_single(self, code: str) -> Attribute | None:
        values = self.attributes.get(code)
        return values[0] if values else None

    def set(self, code: str, values: Iterable[Attribute]) -> None:
        self.attributes[code] = list(values)

    def add(self, code: str, value: Attribute) -> None:
        """Append one value, creating the entry when absent."""
        self.attributes.setdefault(code, [])
        self.attributes[code].append(value)

    def remove(self, code: str) -> None:
        self.attributes.pop(code, None)

    def set_attributes(self, attributes: AttributeMap | dict[str, list[Attribute]]) -> None:
        self.attributes = AttributeMap(attributes)

    def has(self, code: str) -> bool:
        return code in self.attributes

    # -- Standard fields ---------------------------------------------------

    def get_standard_field_value(self, f: StandardField) -> Any:
        """Value of a standard field in its column form."""
        match f:
            case StandardField.ID:
                return self.id
            case StandardField.NAME:
                return self.name
            case StandardField.STATUS:
                return self.status.ordinal
            case StandardField.PARENT_ID:
                return self.parent_id
            case StandardField.GUID:
                return self.guid
            case StandardField.CREATE_USER:
                return self.metadata.create_user
            case StandardField.CREATE_DATE:
                return self.metadata.create_date
            case StandardField.CHANGE_USER:
                return self.metadata.change_user
            case StandardField.CHANGE_DATE:
                return self.metadata.change_date
            case StandardField.ATTACHMENTS:
                return self.attachments
        raise UnsupportedFieldTypeError(f"Unknown standard field: {f!r}")

    def set_standard_field_value(self, f: StandardField, value: Any) -> None:
        match f:
            case StandardField.ID:
                self.id = int(value or 0)
            case StandardField.NAME:
                self.name = value
            case StandardField.STATUS:
                self.status = EntityObjectStatus.from_ordinal(value)
            case StandardField.PARENT_ID:
                self.parent_id = int(value) if value is not None else None
            case StandardField.GUID:
                self.guid = str(value) if value is not None else None
            case StandardField.CREATE_USER:
                self.metadata.create_user = value
            case StandardField.CREATE_DATE:
                self.metadata.create_date = value
            case StandardField.CHANGE_USER:
                self.metadata.change_user = value
            case StandardField.CHANGE_DATE:
                self.metadata.change_date = value
            case StandardField.ATTACHMENTS:
                self.attachments = value
            case _:
                raise UnsupportedFieldTypeError(f"Unknown standard field: {f!r}")

    # -- Attachments -------------------------------------------------------

    def find_attachment(self, guid: str) -> ObjectAttachment | None:
        for a in self.attachments or ():
            if a.guid == guid:
                return a
        return None


@dataclass
class SearchRecord:
    """Flat aggregation result keyed by output column name."""

    values: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Extent:
    min_x: float
    min_y: float
    max_x: float
    max_y: float


__all__ = [
    "AttachmentStatus",
    "AttributeMap",
    "EntityObject",
    "EntityObjectStatus",
    "Extent",
    "Metadata",
    "ObjectAttachment",
    "Point",
    "SearchRecord",
    "utcnow",
]
