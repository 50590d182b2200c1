"""Tests for object ↔ document mapping and foreign-record conversion."""

from __future__ import annotations

import json
from datetime import date, datetime

import pytest

from objectspine.core.context import request_user
from objectspine.core.errors import UnprocessableError
from objectspine.model.fields import FieldType
from objectspine.objects.attributes import (
    AttachmentStatus,
    BooleanAttribute,
    DateAttribute,
    EntityReference,
    Geometry,
    GeometryAttribute,
    NumericAttribute,
    ObjectAttachment,
    RelationAttribute,
    StringAttribute,
)
from objectspine.objects.entity_object import EntityObject, EntityObjectStatus, Metadata
from objectspine.objects.mapper import (
    FeatureField,
    FeatureRecord,
    attachments_from_json,
    attachments_to_json,
    feature_fields,
    object_from_dict,
    object_from_feature,
    object_from_json,
    object_to_dict,
    object_to_feature,
    read_attachments,
    reference_to_dict,
)


class TestObjectToDict:
    def test_document_shape(self, asset_type):
        obj = EntityObject(
            entity_type="asset",
            id=7,
            guid="g7",
            name="Pump",
            metadata=Metadata(create_user="alice", create_date=datetime(2026, 1, 5, 10, 0)),
            attachments=[ObjectAttachment(guid="a1", name="manual.pdf", size=10)],
        )
        obj.set("label", [StringAttribute("Pump")])
        obj.set("tags", [NumericAttribute(1.0), NumericAttribute(2.0)])
        obj.set("parts", [RelationAttribute(EntityReference(id=3, entity_type="part", name="p"))])

        doc = object_to_dict(asset_type, obj)
        assert doc["id"] == 7
        assert doc["entityType"] == "asset"
        assert doc["status"] == 0
        assert doc["metadata"]["createUser"] == "alice"
        assert doc["metadata"]["createDate"] == "2026-01-05T10:00:00"
        assert doc["attributes"]["label"] == "Pump"
        assert doc["attributes"]["tags"] == [1.0, 2.0]
        assert doc["attributes"]["parts"][0]["id"] == 3
        assert doc["attachments"][0]["guid"] == "a1"
        json.dumps(doc)

    def test_only_carried_fields(self, asset_type):
        doc = object_to_dict(asset_type, EntityObject(entity_type="asset", id=1))
        assert doc["attributes"] == {}
        assert doc["attachments"] == []

    def test_reference_to_dict(self):
        obj = EntityObject(entity_type="part", id=2, name="p", guid="g", status=EntityObjectStatus.INACTIVE)
        assert reference_to_dict(obj) == {"id": 2, "entityType": "part", "name": "p", "guid": "g", "status": 1}


class TestObjectFromDict:
    def test_reads_fields_of_the_type(self, asset_type):
        obj = object_from_dict(
            asset_type,
            {
                "id": 4,
                "name": "A",
                "attributes": {"Label": "A", "tags": [1, "2"], "installed": "2026-01-05", "unknown": 1},
            },
        )
        assert obj.id == 4
        assert obj.get_single("label").value == "A"
        assert [a.value for a in obj.get("tags")] == [1.0, 2.0]
        assert obj.get_single("installed").value == date(2026, 1, 5)
        assert not obj.has("unknown")
        assert not obj.has("weight")
        assert obj.attachments is None

    def test_relation_shorthands(self, asset_type):
        obj = object_from_dict(asset_type, {"attributes": {"parts": [3, {"id": 4}, '{"id": 5}']}})
        refs = [a.value for a in obj.get("parts")]
        assert [r.id for r in refs] == [3, 4, 5]
        assert {r.entity_type for r in refs} == {"part"}

    def test_null_multi_valued_is_cleared(self, asset_type):
        obj = object_from_dict(asset_type, {"attributes": {"tags": None}})
        assert obj.get("tags") == []

    def test_multi_valued_needs_list(self, asset_type):
        with pytest.raises(UnprocessableError):
            object_from_dict(asset_type, {"attributes": {"tags": 1}})

    def test_geometry(self, asset_type):
        obj = object_from_dict(asset_type, {"attributes": {"location": "POINT(3 4)"}})
        assert obj.get_single("location").value == Geometry("POINT(3 4)")

    @pytest.mark.parametrize("doc", [[], {"attributes": "label"}, {"status": "retired"}])
    def test_malformed_documents(self, asset_type, doc):
        with pytest.raises(UnprocessableError):
            object_from_dict(asset_type, doc)

    def test_from_json(self, asset_type):
        assert object_from_json(asset_type, '{"name": "x"}').name == "x"
        with pytest.raises(UnprocessableError):
            object_from_json(asset_type, "  ")
        with pytest.raises(UnprocessableError):
            object_from_json(asset_type, "{")


class TestAttachments:
    def test_read_keeps_create_and_delete(self):
        result = read_attachments(
            [
                {"guid": "a", "status": "create", "size": 5},
                {"guid": "b", "status": "DELETE"},
                {"guid": "c", "status": "NONE"},
            ]
        )
        assert [(a.guid, a.status) for a in result] == [
            ("a", AttachmentStatus.CREATE),
            ("b", AttachmentStatus.DELETE),
        ]
        assert result[0].size == 5

    def test_read_none(self):
        assert read_attachments(None) is None

    @pytest.mark.parametrize("raw", ["x", [{"guid": "a"}], [{"guid": "a", "status": "MOVE"}]])
    def test_read_malformed(self, raw):
        with pytest.raises(UnprocessableError):
            read_attachments(raw)

    def test_json_round_trip(self):
        attachments = [ObjectAttachment(guid="a", name="f.txt", md5="m", size=3, content_type="text/plain")]
        assert attachments_from_json(attachments_to_json(attachments)) == attachments

    def test_from_json_must_be_list(self):
        with pytest.raises(UnprocessableError):
            attachments_from_json('{"guid": "a"}')


class TestObjectFromFeature:
    def test_text_values_and_epoch_dates(self, asset_type):
        record = FeatureRecord(
            id=9,
            name="F",
            status=1,
            geometry="POINT(1 1)",
            attributes={"label": "F", "installed": "86400000", "weight": "2.5", "other": "x"},
        )
        with request_user("importer"):
            obj = object_from_feature(asset_type, "location", record)
        assert obj.id == 9
        assert obj.status is EntityObjectStatus.INACTIVE
        assert obj.metadata.change_user == "importer"
        assert obj.get_single("installed").value == date(1970, 1, 2)
        assert obj.get_single("weight").value == 2.5
        assert obj.get_single("location").value == Geometry("POINT(1 1)")
        assert not obj.has("other")

    def test_blank_geometry_is_empty(self, asset_type):
        obj = object_from_feature(asset_type, "location", FeatureRecord(geometry=" "))
        assert obj.get_single("location").value is None


class TestObjectToFeature:
    def _asset(self) -> EntityObject:
        obj = EntityObject(entity_type="asset", id=4, name="Pump", status=EntityObjectStatus.INACTIVE)
        obj.set("label", [StringAttribute("Pump")])
        obj.set("installed", [DateAttribute(date(1970, 1, 2))])
        obj.set("weight", [NumericAttribute(2.5)])
        obj.set("active", [BooleanAttribute(True)])
        obj.set("tags", [NumericAttribute(1.0), NumericAttribute(2.0)])
        obj.set("parts", [RelationAttribute(EntityReference(id=3, entity_type="part", name="P"))])
        obj.set("location", [GeometryAttribute(Geometry("POINT(1 1)"))])
        return obj

    def test_flat_text_record(self, asset_type):
        record = object_to_feature(asset_type, "location", self._asset())
        assert (record.id, record.name, record.status) == (4, "Pump", 1)
        assert record.geometry == "POINT(1 1)"
        assert record.attachments is None
        assert "location" not in record.attributes
        assert record.attributes["installed"] == "86400000"
        assert record.attributes["active"] == "true"
        assert record.attributes["weight"] == "2.5"
        assert json.loads(record.attributes["tags"]) == [1.0, 2.0]
        assert json.loads(record.attributes["parts"])[0]["entityType"] == "part"

    def test_only_carried_fields(self, asset_type):
        obj = EntityObject(entity_type="asset", name="Bare")
        obj.set("label", [StringAttribute("Bare")])
        record = object_to_feature(asset_type, "location", obj)
        assert record.attributes == {"label": "Bare"}
        assert record.geometry is None

    def test_round_trips_through_object_from_feature(self, asset_type):
        original = self._asset()
        restored = object_from_feature(asset_type, "location", object_to_feature(asset_type, "location", original))
        for code in ("label", "installed", "weight", "active", "tags", "parts", "location"):
            assert [a.value for a in restored.get(code)] == [a.value for a in original.get(code)], code
        assert restored.status is EntityObjectStatus.INACTIVE

    def test_relation_without_type_takes_field_target(self, asset_type):
        obj = EntityObject(entity_type="asset", name="A")
        obj.set("parts", [RelationAttribute(EntityReference(id=8))])
        record = object_to_feature(asset_type, "location", obj)
        assert json.loads(record.attributes["parts"])[0]["entityType"] == "part"

    def test_multi_valued_text_must_be_array(self, asset_type):
        with pytest.raises(UnprocessableError, match="JSON array"):
            object_from_feature(asset_type, "location", FeatureRecord(attributes={"tags": "{\"a\": 1}"}))


class TestFeatureFields:
    def test_columns_exclude_geometry(self, asset_type):
        fields = {f.code: f for f in feature_fields(asset_type, "location")}
        assert "location" not in fields
        assert fields["label"] == FeatureField("label", "Label", FieldType.STRING, required=True)
        assert fields["tags"].multiple
        assert fields["weight"].name == "weight"
