"""Tests for EntityObjectManager lifecycle, attachments and limits."""

from __future__ import annotations

from pathlib import Path

import pytest

from objectspine.core.context import request_user
from objectspine.core.errors import (
    AttachmentAlreadyExistsError,
    AttachmentNotFoundError,
    EntityTypeNotFoundError,
    LimitExceededError,
    ObjectIsActiveError,
    ObjectNotFoundError,
    StorageError,
    UnprocessableError,
    ValidationError,
)
from objectspine.objects.attributes import (
    AttachmentStatus,
    NumericAttribute,
    ObjectAttachment,
    StringAttribute,
)
from objectspine.objects.conditions import Comparison, Op
from objectspine.objects.entity_object import EntityObject, EntityObjectStatus
from objectspine.objects.filter import EntityObjectFilter, PageRequest
from objectspine.objects.manager import EntityObjectManager
from objectspine.objects.services import InMemoryLimitsService, LimitKey
from objectspine.objects.validator import ValidationResult


def asset(label: str | None, **extra: float) -> EntityObject:
    obj = EntityObject(entity_type="asset", name=label)
    obj.set("label", [StringAttribute(label)])
    for code, value in extra.items():
        obj.set(code, [NumericAttribute(value)])
    return obj


def upload(guid: str, size: int = 100) -> ObjectAttachment:
    return ObjectAttachment(guid=guid, size=size, status=AttachmentStatus.CREATE)


class RejectingRuleChecker:
    def check(self, entity_type, obj):
        result = ValidationResult()
        result.reject("rule.failed", entity_type.get_field("label"))
        return result


class FailingLimits(InMemoryLimitsService):
    def update_count(self, key, delta):
        if key is LimitKey.OBJECTS:
            raise RuntimeError("counter unavailable")
        super().update_count(key, delta)


@pytest.fixture
def limits() -> InMemoryLimitsService:
    return InMemoryLimitsService()


@pytest.fixture
def manager(repo, schema, blob_store, limits) -> EntityObjectManager:
    return EntityObjectManager(repo, schema, blob_store=blob_store, limits=limits)


class TestCreate:
    def test_create_stamps_metadata(self, manager, limits):
        with request_user("alice"):
            created = manager.create_object("asset", asset("Pump"))
        assert created.id > 0
        assert created.status is EntityObjectStatus.ACTIVE
        loaded = manager.find("asset", created.id)
        assert loaded.metadata.create_user == "alice"
        assert loaded.metadata.change_user == "alice"
        assert loaded.metadata.create_date is not None
        assert limits.counts[LimitKey.OBJECTS] == 1

    def test_client_identity_is_ignored(self, manager):
        obj = asset("Pump")
        obj.id = 99
        obj.guid = "client-guid"
        obj.status = EntityObjectStatus.INACTIVE
        created = manager.create_object("asset", obj)
        assert created.id != 99
        assert created.guid != "client-guid"
        assert created.status is EntityObjectStatus.ACTIVE

    def test_anonymous_user(self, manager):
        created = manager.create_object("asset", asset("Pump"))
        assert manager.find("asset", created.id).metadata.create_user == "anonymous"

    def test_validation_failure_writes_nothing(self, manager, repo, asset_type, limits):
        with pytest.raises(ValidationError):
            manager.create_object("asset", asset(None))
        assert repo.count(asset_type) == 0
        assert limits.counts[LimitKey.OBJECTS] == 0

    def test_rule_checker(self, repo, schema, asset_type):
        manager = EntityObjectManager(repo, schema, rule_checker=RejectingRuleChecker())
        with pytest.raises(ValidationError):
            manager.create_object("asset", asset("Pump"))
        unchecked = asset("Pump")
        unchecked.check_rule = False
        assert manager.create_object("asset", unchecked).id > 0
        assert repo.count(asset_type) == 1

    def test_object_limit(self, repo, schema, asset_type):
        manager = EntityObjectManager(repo, schema, limits=InMemoryLimitsService({LimitKey.OBJECTS: 1}))
        manager.create_object("asset", asset("A"))
        with pytest.raises(LimitExceededError):
            manager.create_object("asset", asset("B"))
        assert repo.count(asset_type) == 1

    def test_counter_failure_rolls_back_insert(self, repo, schema, asset_type):
        manager = EntityObjectManager(repo, schema, limits=FailingLimits())
        with pytest.raises(RuntimeError):
            manager.create_object("asset", asset("A"))
        assert repo.count(asset_type) == 0

    def test_unknown_entity_type(self, manager):
        with pytest.raises(EntityTypeNotFoundError):
            manager.create_object("pump", asset("A"))


class TestRead:
    def test_find_missing(self, manager):
        with pytest.raises(ObjectNotFoundError):
            manager.find("asset", 404)

    def test_find_selected_fields(self, manager):
        created = manager.create_object("asset", asset("Pump", weight=3.0))
        obj = manager.find("asset", created.id, fields=["weight", "nope"])
        assert obj.has("weight")
        assert not obj.has("label")
        assert obj.name == "Pump"

    def test_find_by_guid(self, manager):
        created = manager.create_object("asset", asset("Pump"))
        assert manager.find_by_guid("asset", created.guid).id == created.id
        with pytest.raises(ObjectNotFoundError):
            manager.find_by_guid("asset", "missing")

    def test_find_page_and_count(self, manager):
        for i in range(4):
            manager.create_object("asset", asset(f"A{i}", weight=float(i)))
        flt = EntityObjectFilter(
            condition=Comparison("weight", Op.GE, 1),
            sort_field="weight",
            page=PageRequest(0, 2),
        )
        page = manager.find_page("asset", flt)
        assert [o.name for o in page] == ["A1", "A2"]
        assert page.total == 3
        assert manager.count("asset", flt) == 3
        assert len(manager.find_all("asset", flt)) == 3

    def test_find_page_with_field_selection(self, manager):
        manager.create_object("asset", asset("A", weight=1.0))
        page = manager.find_page("asset", EntityObjectFilter(fields=["weight", "unknown"]))
        assert page.content[0].has("weight")
        assert not page.content[0].has("label")

    def test_find_records_needs_aggregates(self, manager):
        with pytest.raises(UnprocessableError):
            manager.find_records("asset", EntityObjectFilter())

    def test_filter_values(self, manager):
        manager.create_object("asset", asset("A"))
        manager.create_object("asset", asset("B"))
        assert sorted(manager.find_filter_values("asset", "label")) == ["A", "B"]


class TestUpdate:
    def test_patch_keeps_unsupplied_values(self, manager):
        with request_user("alice"):
            created = manager.create_object("asset", asset("Pump", weight=1.0))
        patch = EntityObject(entity_type="asset", id=created.id)
        patch.set("weight", [NumericAttribute(2.0)])
        with request_user("bob"):
            manager.update_object("asset", patch)

        loaded = manager.find("asset", created.id)
        assert loaded.name == "Pump"
        assert loaded.get_single("label").value == "Pump"
        assert loaded.get_single("weight").value == 2.0
        assert loaded.metadata.create_user == "alice"
        assert loaded.metadata.change_user == "bob"

    def test_rename(self, manager):
        created = manager.create_object("asset", asset("Pump"))
        manager.update_object("asset", EntityObject(entity_type="asset", id=created.id, name="Pump-2"))
        assert manager.find("asset", created.id).name == "Pump-2"

    def test_clearing_required_field_is_rejected(self, manager):
        created = manager.create_object("asset", asset("Pump"))
        patch = EntityObject(entity_type="asset", id=created.id)
        patch.set("label", [])
        with pytest.raises(ValidationError):
            manager.update_object("asset", patch)
        assert manager.find("asset", created.id).get_single("label").value == "Pump"

    def test_update_missing(self, manager):
        with pytest.raises(ObjectNotFoundError):
            manager.update_object("asset", EntityObject(entity_type="asset", id=404))


class TestLifecycle:
    def test_delete_deactivates_then_removes(self, manager, repo, asset_type, limits):
        created = manager.create_object("asset", asset("Pump"))
        manager.delete_object("asset", created.id)
        assert manager.find("asset", created.id).status is EntityObjectStatus.INACTIVE
        assert limits.counts[LimitKey.OBJECTS] == 1

        manager.delete_object("asset", created.id)
        assert repo.count(asset_type) == 0
        assert limits.counts[LimitKey.OBJECTS] == 0

    def test_activate(self, manager):
        created = manager.create_object("asset", asset("Pump"))
        with pytest.raises(ObjectIsActiveError):
            manager.activate_object("asset", created.id)
        manager.delete_object("asset", created.id)
        with request_user("carol"):
            activated = manager.activate_object("asset", created.id)
        assert activated.status is EntityObjectStatus.ACTIVE
        loaded = manager.find("asset", created.id)
        assert loaded.status is EntityObjectStatus.ACTIVE
        assert loaded.metadata.change_user == "carol"
        assert loaded.get_single("label").value == "Pump"

    def test_delete_missing(self, manager):
        with pytest.raises(ObjectNotFoundError):
            manager.delete_object("asset", 404)

    def test_force_delete(self, manager, repo, asset_type):
        created = manager.create_object("asset", asset("Pump"))
        manager.delete_object_force("asset", created.id)
        assert repo.count(asset_type) == 0
        manager.delete_object_force("asset", created.id)


class TestAttachments:
    @pytest.fixture
    def with_file(self, manager, blob_store):
        blob_store.upload("g1", "manual.pdf", size=100)
        obj = asset("Pump")
        obj.attachments = [upload("g1")]
        with request_user("alice"):
            return manager.create_object("asset", obj)

    def test_create_makes_file_permanent(self, manager, blob_store, limits, with_file):
        stored = manager.get_object_attachments("asset", with_file.id)
        assert stored == [
            ObjectAttachment(
                guid="g1",
                name="manual.pdf",
                md5="md5-g1",
                size=100,
                content_type="text/plain",
                create_user="alice",
            )
        ]
        assert "g1" in blob_store.buckets["attachments"]
        assert limits.counts[LimitKey.FILES] == 1
        assert limits.counts[LimitKey.FILES_AMOUNT] == 100

    def test_attachment_info_and_file(self, manager, with_file):
        assert manager.find_object_attachment_info("asset", with_file.id, "g1").name == "manual.pdf"
        assert manager.get_object_attachment_file("asset", with_file.id, "g1") == Path("/blobs/attachments/g1")
        assert manager.get_attachment_file_metadata("g1").md5 == "md5-g1"
        with pytest.raises(AttachmentNotFoundError):
            manager.find_object_attachment_info("asset", with_file.id, "nope")

    def test_add_existing_guid(self, manager, with_file):
        patch = EntityObject(entity_type="asset", id=with_file.id, attachments=[upload("g1")])
        with pytest.raises(AttachmentAlreadyExistsError):
            manager.update_object("asset", patch)

    def test_add_second_file(self, manager, blob_store, limits, with_file):
        blob_store.upload("g2", "photo.png", size=50)
        manager.update_object(
            "asset", EntityObject(entity_type="asset", id=with_file.id, attachments=[upload("g2", 50)])
        )
        guids = [a.guid for a in manager.get_object_attachments("asset", with_file.id)]
        assert guids == ["g1", "g2"]
        assert limits.counts[LimitKey.FILES] == 2
        assert limits.counts[LimitKey.FILES_AMOUNT] == 150

    def test_remove_file(self, manager, blob_store, limits, with_file):
        removal = ObjectAttachment(guid="g1", size=100, status=AttachmentStatus.DELETE)
        manager.update_object("asset", EntityObject(entity_type="asset", id=with_file.id, attachments=[removal]))
        assert manager.get_object_attachments("asset", with_file.id) == []
        assert blob_store.deleted == ["g1"]
        assert limits.counts[LimitKey.FILES] == 0

    def test_remove_unknown_file(self, manager, with_file):
        removal = ObjectAttachment(guid="nope", status=AttachmentStatus.DELETE)
        with pytest.raises(AttachmentNotFoundError):
            manager.update_object("asset", EntityObject(entity_type="asset", id=with_file.id, attachments=[removal]))

    def test_delete_on_create(self, manager):
        obj = asset("Pump")
        obj.attachments = [ObjectAttachment(guid="g1", status=AttachmentStatus.DELETE)]
        with pytest.raises(AttachmentNotFoundError):
            manager.create_object("asset", obj)

    def test_hard_delete_removes_blobs(self, manager, blob_store, limits, with_file):
        manager.delete_object_force("asset", with_file.id)
        assert blob_store.deleted == ["g1"]
        assert limits.counts[LimitKey.FILES] == 0
        assert limits.counts[LimitKey.FILES_AMOUNT] == 0

    def test_file_limit(self, repo, schema, blob_store):
        manager = EntityObjectManager(
            repo, schema, blob_store=blob_store, limits=InMemoryLimitsService({LimitKey.FILES: 0})
        )
        blob_store.upload("g1", "a.txt")
        obj = asset("Pump")
        obj.attachments = [upload("g1")]
        with pytest.raises(LimitExceededError):
            manager.create_object("asset", obj)
        assert "g1" in blob_store.temporary

    def test_missing_blob_store(self, repo, schema):
        manager = EntityObjectManager(repo, schema)
        obj = asset("Pump")
        obj.attachments = [upload("g1")]
        with pytest.raises(StorageError):
            manager.create_object("asset", obj)
