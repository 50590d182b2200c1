"""Entity-object engine.

Architecture::

    attributes.py      typed attribute variants and conversion tables
    entity_object.py   EntityObject, AttributeMap, Metadata, SearchRecord
    values.py          resolved field → value maps, driver encoding
    conditions.py      condition tree spliced into WHERE
    filter.py          EntityObjectFilter, PageRequest, Page, AggregateSpec
    query.py           EntitySelectBuilder
    rows.py            row decoding
    repository.py      EntityObjectRepository (read/write/geometry)
    validator.py       required-field validation
    mapper.py          transport documents and foreign records
    services.py        blob store, limits, rule checker protocols
    manager.py         EntityObjectManager (lifecycle orchestration)
"""

from objectspine.objects.attributes import (
    Attribute,
    EntityReference,
    Geometry,
    GeometryFormat,
    convert_to_attribute,
    create_attribute,
)
from objectspine.objects.conditions import And, Comparison, Condition, Not, Op, Or
from objectspine.objects.entity_object import (
    AttributeMap,
    EntityObject,
    EntityObjectStatus,
    Metadata,
    ObjectAttachment,
    SearchRecord,
)
from objectspine.objects.filter import AggregateSpec, EntityObjectFilter, Page, PageRequest, SortType
from objectspine.objects.manager import EntityObjectManager
from objectspine.objects.query import EntitySelectBuilder
from objectspine.objects.repository import EntityObjectRepository
from objectspine.objects.validator import EntityObjectValidator, ValidationResult

__all__ = [
    "AggregateSpec",
    "And",
    "Attribute",
    "AttributeMap",
    "Comparison",
    "Condition",
    "EntityObject",
    "EntityObjectFilter",
    "EntityObjectManager",
    "EntityObjectRepository",
    "EntityObjectStatus",
    "EntityObjectValidator",
    "EntityReference",
    "EntitySelectBuilder",
    "Geometry",
    "GeometryFormat",
    "Metadata",
    "Not",
    "ObjectAttachment",
    "Op",
    "Or",
    "Page",
    "PageRequest",
    "SearchRecord",
    "SortType",
    "ValidationResult",
    "convert_to_attribute",
    "create_attribute",
]
