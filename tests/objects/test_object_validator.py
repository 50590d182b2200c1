"""Tests for required-field validation."""

from __future__ import annotations

import pytest

from objectspine.core.errors import ValidationError
from objectspine.model.entity_type import EntityType
from objectspine.model.fields import BaseField, FieldType
from objectspine.objects.attributes import NumericAttribute, StringAttribute
from objectspine.objects.entity_object import EntityObject
from objectspine.objects.validator import (
    FIELD_IS_NULL,
    MULTIPLE_FIELD_IS_EMPTY,
    EntityObjectValidator,
)

GAUGE = EntityType(
    "gauge",
    (
        BaseField(code_name="label", field_type=FieldType.STRING, name="Label", required=True),
        BaseField(code_name="readings", field_type=FieldType.NUMERIC, name="Readings", multiple=True, required=True),
        BaseField(code_name="note", field_type=FieldType.STRING),
    ),
)


@pytest.fixture
def validator() -> EntityObjectValidator:
    return EntityObjectValidator()


class TestNewObjects:
    def test_missing_required_fields_accumulate(self, validator):
        result = validator.validate(GAUGE, EntityObject(entity_type="gauge"))
        assert not result.is_valid
        assert [(v.code, v.field) for v in result.violations] == [
            (FIELD_IS_NULL, "Label"),
            (MULTIPLE_FIELD_IS_EMPTY, "Readings"),
        ]

    def test_null_value_is_rejected(self, validator):
        obj = EntityObject(entity_type="gauge")
        obj.set("label", [StringAttribute(None)])
        obj.set("readings", [NumericAttribute(1.0)])
        result = validator.validate(GAUGE, obj)
        assert [v.field for v in result.violations] == ["Label"]

    def test_valid(self, validator):
        obj = EntityObject(entity_type="gauge")
        obj.set("label", [StringAttribute("g")])
        obj.set("readings", [NumericAttribute(1.0)])
        assert validator.validate(GAUGE, obj).is_valid


class TestExistingObjects:
    def test_absent_fields_are_exempt(self, validator):
        assert validator.validate(GAUGE, EntityObject(entity_type="gauge", id=4)).is_valid

    def test_supplied_fields_are_checked(self, validator):
        obj = EntityObject(entity_type="gauge", id=4)
        obj.set("readings", [])
        result = validator.validate(GAUGE, obj)
        assert [v.code for v in result.violations] == [MULTIPLE_FIELD_IS_EMPTY]


class TestRequireValid:
    def test_raises_with_every_violation(self, validator):
        result = validator.validate(GAUGE, EntityObject(entity_type="gauge"))
        with pytest.raises(ValidationError) as exc_info:
            result.require_valid("gauge")
        assert len(exc_info.value.violations) == 2
        assert "Label, Readings" in exc_info.value.message

    def test_valid_result_does_not_raise(self, validator):
        validator.validate(GAUGE, EntityObject(entity_type="gauge", id=1)).require_valid()
