"""
External collaborators of the object manager.

The engine owns no blob storage, quota accounting or rule engine. These
protocols describe what it calls; deployments plug in their own
implementations. In-process implementations are provided for development,
the CLI and tests.

Architecture:
    ::

        EntityObjectManager
          ├── BlobStore      extract_file | get_file_metadata | make_file_permanent | delete_file
          ├── LimitsService  check_limit(key, delta) before writes, update_count(key, delta) after
          └── RuleChecker    check(entity_type, obj) → ValidationResult (when obj.check_rule)

Guardrails:
    ❌ DON'T: Update counters before the write succeeded
    ✅ DO: check_limit() first, update_count() after save()

Tags:
    protocol, storage, limits, rules, objectspine
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from objectspine.core.errors import LimitExceededError
from objectspine.core.logging import get_logger
from objectspine.model.entity_type import EntityType
from objectspine.objects.entity_object import EntityObject
from objectspine.objects.validator import ValidationResult

logger = get_logger(__name__)


class LimitKey(str, Enum):
    """Counters kept by the limits service."""

    OBJECTS = "OBJECTS"
    FILES = "FILES"
    FILES_AMOUNT = "FILES_AMOUNT"


@dataclass(frozen=True)
class FileMetadata:
    name: str
    md5: str | None = None
    size: int = 0
    content_type: str | None = None


@runtime_checkable
class BlobStore(Protocol):
    """Attachment blob storage."""

    def extract_file(self, bucket: str, guid: str) -> Path:
        """Local path of the stored file."""
        ...

    def get_file_metadata(self, bucket: str, guid: str) -> FileMetadata:
        ...

    def make_file_permanent(self, guid: str, bucket: str) -> None:
        """Move an uploaded temporary file into *bucket*."""
        ...

    def delete_file(self, bucket: str, guid: str) -> None:
        ...


@runtime_checkable
class LimitsService(Protocol):
    """Quota counters; ``check_limit`` raises :class:`LimitExceededError`."""

    def check_limit(self, key: LimitKey, delta: int = 1) -> None:
        ...

    def update_count(self, key: LimitKey, delta: int) -> None:
        ...


@runtime_checkable
class RuleChecker(Protocol):
    """Business-rule evaluation for one object."""

    def check(self, entity_type: EntityType, obj: EntityObject) -> ValidationResult:
        ...


class InMemoryLimitsService:
    """Counters in a dict; keys without a configured limit are unlimited."""

    def __init__(self, limits: dict[LimitKey, int] | None = None) -> None:
        self.limits = dict(limits or {})
        self.counts: dict[LimitKey, int] = {key: 0 for key in LimitKey}

    def check_limit(self, key: LimitKey, delta: int = 1) -> None:
        limit = self.limits.get(key)
        if limit is None or delta <= 0:
            return
        if self.counts[key] + delta > limit:
            raise LimitExceededError(
                f"Limit {key.value} exceeded: {self.counts[key]} + {delta} > {limit}",
                key=key.value,
                delta=delta,
            )

    def update_count(self, key: LimitKey, delta: int) -> None:
        self.counts[key] = self.counts.get(key, 0) + delta
        logger.debug("limit_count_updated", key=key.value, delta=delta, count=self.counts[key])


class AcceptAllRuleChecker:
    """Rule checker that accepts every object."""

    def check(self, entity_type: EntityType, obj: EntityObject) -> ValidationResult:  # noqa: ARG002
        return ValidationResult()


__all__ = [
    "AcceptAllRuleChecker",
    "BlobStore",
    "FileMetadata",
    "InMemoryLimitsService",
    "LimitKey",
    "LimitsService",
    "RuleChecker",
]
