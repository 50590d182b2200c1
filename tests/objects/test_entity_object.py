"""Tests for EntityObject, AttributeMap and lifecycle status."""

from __future__ import annotations

from datetime import datetime

import pytest

from objectspine.core.errors import UnprocessableError, UnsupportedFieldTypeError
from objectspine.model.fields import StandardField
from objectspine.objects.attributes import NumericAttribute, ObjectAttachment, StringAttribute
from objectspine.objects.entity_object import (
    AttributeMap,
    EntityObject,
    EntityObjectStatus,
    Metadata,
    SearchRecord,
)


class TestEntityObjectStatus:
    def test_ordinals(self):
        assert EntityObjectStatus.ACTIVE.ordinal == 0
        assert EntityObjectStatus.INACTIVE.ordinal == 1

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, EntityObjectStatus.ACTIVE),
            (1, EntityObjectStatus.INACTIVE),
            ("0", EntityObjectStatus.ACTIVE),
            ("inactive", EntityObjectStatus.INACTIVE),
        ],
    )
    def test_from_ordinal(self, raw, expected):
        assert EntityObjectStatus.from_ordinal(raw) is expected

    @pytest.mark.parametrize("raw", ["retired", "7", 7, " "])
    def test_unknown_status(self, raw):
        with pytest.raises(UnprocessableError):
            EntityObjectStatus.from_ordinal(raw)


class TestAttributeMap:
    def test_keys_are_case_insensitive(self):
        m = AttributeMap({"Label": [StringAttribute("a")]})
        assert "LABEL" in m
        assert m["label"] == [StringAttribute("a")]
        assert list(m) == ["label"]

    def test_values_are_copied(self):
        values = [StringAttribute("a")]
        m = AttributeMap()
        m["x"] = values
        values.append(StringAttribute("b"))
        assert len(m["x"]) == 1

    def test_delete(self):
        m = AttributeMap([("a", [])])
        del m["A"]
        assert len(m) == 0


class TestEntityObject:
    def test_new_until_id_assigned(self):
        obj = EntityObject(entity_type="asset")
        assert obj.is_new()
        obj.id = 5
        assert not obj.is_new()

    def test_absent_versus_cleared(self):
        obj = EntityObject()
        assert obj.get("tags") is None
        obj.set("tags", [])
        assert obj.get("tags") == []
        assert obj.has("TAGS")
        obj.remove("tags")
        assert not obj.has("tags")

    def test_add_and_get_single(self):
        obj = EntityObject()
        obj.add("tags", NumericAttribute(1.0))
        obj.add("Tags", NumericAttribute(2.0))
        assert obj.get_single("tags") == NumericAttribute(1.0)
        assert len(obj.get("tags")) == 2

    def test_attribute_dict_is_wrapped(self):
        obj = EntityObject(attributes={"Label": [StringAttribute("x")]})
        assert isinstance(obj.attributes, AttributeMap)
        assert obj.get_single("label").value == "x"

    def test_standard_field_round_trip(self):
        obj = EntityObject()
        stamp = datetime(2026, 1, 5, 10, 0)
        obj.set_standard_field_value(StandardField.ID, "9")
        obj.set_standard_field_value(StandardField.STATUS, 1)
        obj.set_standard_field_value(StandardField.CREATE_DATE, stamp)
        obj.set_standard_field_value(StandardField.PARENT_ID, None)
        assert obj.id == 9
        assert obj.status is EntityObjectStatus.INACTIVE
        assert obj.get_standard_field_value(StandardField.STATUS) == 1
        assert obj.get_standard_field_value(StandardField.CREATE_DATE) == stamp
        assert obj.parent_id is None

    def test_non_standard_field_is_a_programming_error(self):
        obj = EntityObject()
        with pytest.raises(UnsupportedFieldTypeError):
            obj.get_standard_field_value("label")
        with pytest.raises(UnsupportedFieldTypeError):
            obj.set_standard_field_value("label", "x")

    def test_find_attachment(self):
        obj = EntityObject(attachments=[ObjectAttachment(guid="g1"), ObjectAttachment(guid="g2")])
        assert obj.find_attachment("g2").guid == "g2"
        assert obj.find_attachment("g3") is None
        assert EntityObject().find_attachment("g1") is None


class TestMetadata:
    def test_for_user_stamps_both_sides(self):
        m = Metadata.for_user("alice")
        assert m.create_user == m.change_user == "alice"
        assert m.create_date == m.change_date

    def test_changed_keeps_creator(self):
        m = Metadata.for_user("alice")
        m.changed("bob")
        assert m.create_user == "alice"
        assert m.change_user == "bob"
        assert m.change_date >= m.create_date


class TestSearchRecord:
    def test_access(self):
        record = SearchRecord({"count": 3})
        assert record["count"] == 3
        assert record.get("missing", 0) == 0
