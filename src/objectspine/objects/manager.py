"""
Object manager: lifecycle rules on top of the repository.

Manifesto:
    The repository knows how to persist; the manager knows when. It owns
    the two-state lifecycle, attachment reconciliation and the calls to
    quota counters, blob storage and the rule checker, and it runs every
    mutation in one transaction.

    - **Reject before writing:** limits, validation and rule checks run
      before the first INSERT/UPDATE, a failed mutation leaves no row
    - **One transaction:** any exception inside a mutation rolls back
      every statement of it
    - **User from context:** metadata is stamped with
      :func:`~objectspine.core.context.current_user`, never a parameter

Architecture:
    ::

        Lifecycle (status state machine)

            create ──► ACTIVE ◄──── activate ────┐
                         │                        │
                      delete (soft)               │
                         ▼                        │
                      INACTIVE ───────────────────┘
                         │
                      delete (hard) / delete_force
                         ▼
                      (removed)

        Mutation pipeline

            check limits → reconcile attachments → validate → rule check
                → repository.save() → update counters

Examples:
    >>> manager = EntityObjectManager(repo, schema)
    >>> with request_user("alice"):
    ...     created = manager.create_object("asset", obj)
    >>> manager.delete_object("asset", created.id)   # ACTIVE → INACTIVE
    >>> manager.delete_object("asset", created.id)   # removed

Guardrails:
    ❌ DON'T: Call ``repository.save()`` for user input directly
    ✅ DO: Go through the manager so validation and counters apply

Tags:
    manager, lifecycle, attachments, limits, objectspine
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from objectspine.core.context import current_user
from objectspine.core.errors import (
    AttachmentAlreadyExistsError,
    AttachmentNotFoundError,
    ObjectIsActiveError,
    ObjectNotFoundError,
    StorageError,
    UnprocessableError,
)
from objectspine.core.logging import LogContext, get_logger
from objectspine.model.entity_type import EntityType, standard_fields
from objectspine.model.schema import SchemaProvider
from objectspine.objects.attributes import AttachmentStatus, ObjectAttachment
from objectspine.objects.entity_object import (
    EntityObject,
    EntityObjectStatus,
    Metadata,
    SearchRecord,
)
from objectspine.objects.filter import EntityObjectFilter, Page
from objectspine.objects.query import EntitySelectBuilder
from objectspine.objects.repository import EntityObjectRepository
from objectspine.objects.services import (
    AcceptAllRuleChecker,
    BlobStore,
    FileMetadata,
    InMemoryLimitsService,
    LimitKey,
    LimitsService,
    RuleChecker,
)
from objectspine.objects.validator import EntityObjectValidator

logger = get_logger(__name__)

DEFAULT_ATTACHMENTS_BUCKET = "attachments"


@dataclass
class FilesUpdate:
    """Net change of attachment count and total size."""

    count: int = 0
    size: int = 0


class EntityObjectManager:
    """Entry point for reading and mutating entity objects.

    Parameters:
        repository: Persistence for objects
        schema: Resolves entity-type codes (required only when codes are passed)
        validator: Required-field validator
        rule_checker: Business rules, run when ``obj.check_rule`` is set
        blob_store: Attachment storage (required only for attachments)
        limits: Quota counters
        attachments_bucket: Bucket holding attachment blobs
    """

    def __init__(
        self,
        repository: EntityObjectRepository,
        schema: SchemaProvider | None = None,
        *,
        validator: EntityObjectValidator | None = None,
        rule_checker: RuleChecker | None = None,
        blob_store: BlobStore | None = None,
        limits: LimitsService | None = None,
        attachments_bucket: str = DEFAULT_ATTACHMENTS_BUCKET,
    ) -> None:
        self.repository = repository
        self.schema = schema
        self.validator = validator or EntityObjectValidator()
        self.rule_checker: RuleChecker = rule_checker or AcceptAllRuleChecker()
        self.blob_store = blob_store
        self.limits: LimitsService = limits or InMemoryLimitsService()
        self.attachments_bucket = attachments_bucket

    # =====================================================================
    # Queries
    # =====================================================================

    def find_page(self, entity_type: EntityType | str, flt: EntityObjectFilter | None = None) -> Page[EntityObject]:
        """Objects matching *flt*, one page when the filter has a page request."""
        et = self._resolve(entity_type)
        flt = flt or EntityObjectFilter()
        query = self._query(et, flt).with_fields(*standard_fields()).pageable(flt.page)
        return self.repository.find_all(query)

    def find_all(self, entity_type: EntityType | str, flt: EntityObjectFilter | None = None) -> list[EntityObject]:
        """Every object matching *flt*; the filter's page is ignored."""
        et = self._resolve(entity_type)
        query = self._query(et, flt or EntityObjectFilter()).with_fields(*standard_fields())
        return self.repository.find_all(query).content

    def count(self, entity_type: EntityType | str, flt: EntityObjectFilter | None = None) -> int:
        et = self._resolve(entity_type)
        return self.repository.count(self._query(et, flt or EntityObjectFilter()))

    def find_records(self, entity_type: EntityType | str, flt: EntityObjectFilter) -> Page[SearchRecord]:
        """Aggregated records per the filter's aggregate spec."""
        et = self._resolve(entity_type)
        if not flt.aggregates:
            raise UnprocessableError("Record search needs at least one aggregate")
        query = (
            self._query(et, flt)
            .aggregate(flt.aggregates, flt.group_by)
            .pageable(flt.page)
        )
        return self.repository.find_records(query)

    def find_filter_values(self, entity_type: EntityType | str, field_code: str) -> list[str]:
        return self.repository.find_unique_values(self._resolve(entity_type), field_code)

    def find(
        self,
        entity_type: EntityType | str,
        object_id: int,
        fields: Iterable[str] | None = None,
        srid: int | None = None,
    ) -> EntityObject:
        """One object with all fields, or only the named ones (unknown codes are skipped)."""
        et = self._resolve(entity_type)
        selected = None
        if fields is not None:
            by_code = et.field_map()
            selected = [by_code[c.lower()] for c in fields if c.lower() in by_code]
        obj = self.repository.find_one(et, object_id=object_id, fields=selected, srid=srid)
        if obj is None:
            raise ObjectNotFoundError(f"Object not found: {et.code_name}#{object_id}").with_context(
                entity_type=et.code_name, object_id=object_id
            )
        return obj

    def find_by_guid(self, entity_type: EntityType | str, guid: str) -> EntityObject:
        et = self._resolve(entity_type)
        obj = self.repository.find_one(et, guid=guid)
        if obj is None:
            raise ObjectNotFoundError(f"Object not found: {et.code_name} guid {guid}").with_context(
                entity_type=et.code_name
            )
        return obj

    # =====================================================================
    # Attachments (read)
    # =====================================================================

    def get_object_attachments(self, entity_type: EntityType | str, object_id: int) -> list[ObjectAttachment]:
        return list(self._load_base(self._resolve(entity_type), object_id).attachments or [])

    def find_object_attachment_info(
        self, entity_type: EntityType | str, object_id: int, guid: str
    ) -> ObjectAttachment:
        obj = self._load_base(self._resolve(entity_type), object_id)
        attachment = obj.find_attachment(guid)
        if attachment is None:
            raise AttachmentNotFoundError(f"Attachment not found: {guid}").with_context(
                entity_type=obj.entity_type, object_id=object_id, attachment=guid
            )
        return attachment

    def get_object_attachment_file(self, entity_type: EntityType | str, object_id: int, guid: str) -> Path:
        self.find_object_attachment_info(entity_type, object_id, guid)
        return self._blobs().extract_file(self.attachments_bucket, guid)

    def get_attachment_file_metadata(self, guid: str) -> FileMetadata:
        return self._blobs().get_file_metadata(self.attachments_bucket, guid)

    # =====================================================================
    # Mutations
    # =====================================================================

    def create_object(self, entity_type: EntityType | str, obj: EntityObject) -> EntityObject:
        et = self._resolve(entity_type)
        with LogContext(entity_type=et.code_name), self.repository.transaction():
            self.limits.check_limit(LimitKey.OBJECTS, 1)
            obj.id = 0
            obj.guid = None
            obj.parent_id = None
            obj.metadata = Metadata.for_user(current_user())
            obj.status = EntityObjectStatus.ACTIVE

            files = self._update_attachments(obj, None)
            created = self._validate_and_save(et, obj)

            self.limits.update_count(LimitKey.OBJECTS, 1)
            self._update_file_counts(files)
        logger.info("object_created", entity_type=et.code_name, object_id=created.id)
        return created

    def update_object(self, entity_type: EntityType | str, obj: EntityObject) -> EntityObject:
        """Apply a patch: name, the supplied attributes and attachment changes."""
        et = self._resolve(entity_type)
        with LogContext(entity_type=et.code_name, object_id=obj.id), self.repository.transaction():
            original = self.repository.find_one(et, object_id=obj.id)
            if original is None:
                raise ObjectNotFoundError(f"Object not found: {et.code_name}#{obj.id}").with_context(
                    entity_type=et.code_name, object_id=obj.id
                )
            original.metadata.changed(current_user())
            if obj.name is not None:
                original.name = obj.name
            original.set_attributes(obj.attributes)
            files = self._update_attachments(obj, original)
            original.check_rule = obj.check_rule

            updated = self._validate_and_save(et, original)
            self._update_file_counts(files)
        logger.info("object_updated", entity_type=et.code_name, object_id=updated.id)
        return updated

    def activate_object(self, entity_type: EntityType | str, object_id: int) -> EntityObject:
        et = self._resolve(entity_type)
        with self.repository.transaction():
            obj = self._load_base(et, object_id)
            if obj.status is EntityObjectStatus.ACTIVE:
                raise ObjectIsActiveError(f"Object is already active: {et.code_name}#{object_id}").with_context(
                    entity_type=et.code_name, object_id=object_id
                )
            obj.status = EntityObjectStatus.ACTIVE
            obj.metadata.changed(current_user())
            self.repository.save(et, obj)
        logger.info("object_activated", entity_type=et.code_name, object_id=object_id)
        return obj

    def delete_object(self, entity_type: EntityType | str, object_id: int) -> None:
        """Soft delete an ACTIVE object; hard delete an INACTIVE one."""
        et = self._resolve(entity_type)
        with self.repository.transaction():
            obj = self._load_base(et, object_id)
            if obj.status is EntityObjectStatus.ACTIVE:
                obj.status = EntityObjectStatus.INACTIVE
                obj.metadata.changed(current_user())
                self.repository.save(et, obj)
                logger.info("object_deactivated", entity_type=et.code_name, object_id=object_id)
            else:
                self._delete_force(et, obj)

    def delete_object_force(self, entity_type: EntityType | str, object_id: int) -> None:
        """Hard delete regardless of status; a missing object is ignored."""
        et = self._resolve(entity_type)
        with self.repository.transaction():
            obj = self.repository.find_one_base(et, object_id=object_id)
            if obj is not None:
                self._delete_force(et, obj)

    # =====================================================================
    # Internals
    # =====================================================================

    def _resolve(self, entity_type: EntityType | str) -> EntityType:
        if isinstance(entity_type, EntityType):
            return entity_type
        if self.schema is None:
            raise TypeError("Entity type codes need a schema provider")
        return self.schema.get(entity_type)

    def _query(self, et: EntityType, flt: EntityObjectFilter) -> EntitySelectBuilder:
        query = self.repository.new_builder(et)
        if flt.fields is not None:
            query.with_fields(*(f for f in (et.get_field(c) for c in flt.fields) if f is not None))
        else:
            query.with_fields(*et.fields)
        return query.srid(flt.srid).sort(flt.sort_field, flt.sort_type).where(flt.condition)

    def _load_base(self, et: EntityType, object_id: int) -> EntityObject:
        obj = self.repository.find_one_base(et, object_id=object_id)
        if obj is None:
            raise ObjectNotFoundError(f"Object not found: {et.code_name}#{object_id}").with_context(
                entity_type=et.code_name, object_id=object_id
            )
        return obj

    def _validate_and_save(self, et: EntityType, obj: EntityObject) -> EntityObject:
        self.validator.validate(et, obj).require_valid(et.code_name)
        if obj.check_rule:
            self.rule_checker.check(et, obj).require_valid(et.code_name)
        return self.repository.save(et, obj)

    def _blobs(self) -> BlobStore:
        if self.blob_store is None:
            raise StorageError("No blob store configured for attachments")
        return self.blob_store

    def _update_attachments(self, obj: EntityObject, original: EntityObject | None) -> FilesUpdate:
        """Apply CREATE/DELETE entries of *obj* to *original* (or to *obj* itself on create)."""
        if obj.attachments is None:
            return FilesUpdate()

        files = FilesUpdate()
        for a in obj.attachments:
            if a.status is AttachmentStatus.CREATE:
                files.count += 1
                files.size += a.size
            elif a.status is AttachmentStatus.DELETE:
                files.count -= 1
                files.size -= a.size
        self.limits.check_limit(LimitKey.FILES, files.count)
        self.limits.check_limit(LimitKey.FILES_AMOUNT, files.size)

        if original is None:
            kept: list[ObjectAttachment] = []
            for a in obj.attachments:
                if a.status is AttachmentStatus.DELETE:
                    raise AttachmentNotFoundError(f"Attachment not found: {a.guid}").with_context(
                        attachment=a.guid
                    )
                if a.status is AttachmentStatus.CREATE:
                    self._add_attachment(a)
                kept.append(a)
            obj.attachments = kept
            return files

        if original.attachments is None:
            original.attachments = []
        for a in obj.attachments:
            if a.status is AttachmentStatus.CREATE:
                if original.find_attachment(a.guid) is not None:
                    raise AttachmentAlreadyExistsError(f"Attachment already exists: {a.guid}").with_context(
                        object_id=original.id, attachment=a.guid
                    )
                self._add_attachment(a)
                original.attachments.append(a)
            elif a.status is AttachmentStatus.DELETE:
                stored = original.find_attachment(a.guid)
                if stored is None:
                    raise AttachmentNotFoundError(f"Attachment not found: {a.guid}").with_context(
                        object_id=original.id, attachment=a.guid
                    )
                original.attachments.remove(stored)
                self._blobs().delete_file(self.attachments_bucket, a.guid)
        return files

    def _add_attachment(self, a: ObjectAttachment) -> None:
        blobs = self._blobs()
        a.create_user = current_user()
        blobs.make_file_permanent(a.guid, self.attachments_bucket)
        meta = blobs.get_file_metadata(self.attachments_bucket, a.guid)
        a.name = meta.name
        a.md5 = meta.md5
        a.size = meta.size
        a.content_type = meta.content_type
        a.status = None

    def _delete_force(self, et: EntityType, obj: EntityObject) -> None:
        self.repository.delete(et, obj)
        files = FilesUpdate()
        for a in list(obj.attachments or []):
            files.count -= 1
            files.size -= a.size
            self._blobs().delete_file(self.attachments_bucket, a.guid)
        self.limits.update_count(LimitKey.OBJECTS, -1)
        self._update_file_counts(files)
        logger.info("object_removed", entity_type=et.code_name, object_id=obj.id)

    def _update_file_counts(self, files: FilesUpdate) -> None:
        self.limits.update_count(LimitKey.FILES, files.count)
        self.limits.update_count(LimitKey.FILES_AMOUNT, files.size)


__all__ = [
    "DEFAULT_ATTACHMENTS_BUCKET",
    "EntityObjectManager",
    "FilesUpdate",
]
