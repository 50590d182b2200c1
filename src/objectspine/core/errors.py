"""
Structured error types for object-spine.

Provides a typed hierarchy of errors with the metadata that callers need to
map failures onto responses (missing resource, conflict, validation report)
and to decide whether a failed operation is worth retrying.

Every error raised by the engine extends ObjectSpineError and carries:
- **Category:** What kind of failure (not-found, conflict, geometry, ...)
- **Retryable:** Whether the same call may succeed later
- **Context:** Entity type, object id, field and attachment involved
- **Cause:** Chained driver or parser exception

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the caller can act on
    - **Detect Before Write:** Validation and limit errors are raised before
      any statement is issued
    - **No Internal Retries:** Transient database errors surface to the caller
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       ObjectSpineError                           │
        │            (category, retryable, context, cause)                 │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  NotFoundError          ConflictError        ValidationError     │
        │  (NOT_FOUND)            (CONFLICT)           (VALIDATION)        │
        │    │                      │                    violations[]      │
        │  EntityTypeNotFound     ObjectIsActive                           │
        │  ObjectNotFound         AttachmentAlreadyExists                  │
        │  FieldNotFound                                                   │
        │  AttachmentNotFound                                              │
        │                                                                  │
        │  UnprocessableError     GeometryError        LimitExceededError  │
        │  (PARSE)                (GEOMETRY)           (LIMIT)             │
        │                                                                  │
        │  DatabaseError          ConfigError          UnsupportedFieldType│
        │  (DATABASE)             (CONFIG)             (INTERNAL)          │
        │    │                      │                                      │
        │  QueryError             SchemaError                              │
        │  DatabaseConnectionError (retryable)                             │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ObjectNotFoundError("object 7 not found")
    >>> error.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> error.with_context(entity_type="asset", object_id=7).context.object_id
    7

    >>> try:
    ...     float("abc")
    ... except ValueError as e:
    ...     raise UnprocessableError("cannot parse NUMERIC", cause=e)
    Traceback (most recent call last):
    ...
    UnprocessableError: cannot parse NUMERIC

Guardrails:
    ❌ DON'T: Catch UnsupportedFieldTypeError, it signals a schema/code mismatch
    ✅ DO: Let it propagate to the process boundary

    ❌ DON'T: Raise ValidationError per field
    ✅ DO: Accumulate FieldViolation entries and raise once

Tags:
    error-handling, exception-hierarchy, entity-objects, objectspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and response mapping.

    Categories are grouped by how a transport layer typically reacts:
    - **Caller mistakes:** NOT_FOUND, CONFLICT, VALIDATION, PARSE, LIMIT
    - **Data/driver problems:** GEOMETRY, DATABASE, STORAGE
    - **Deployment problems:** CONFIG
    - **Bugs:** INTERNAL

    Attributes:
        NOT_FOUND: Entity type, object, field or attachment missing
        CONFLICT: State transition or uniqueness conflict
        VALIDATION: Required-field violations
        PARSE: Malformed JSON, temporal text, condition or conversion input
        GEOMETRY: Spatial output not matching the expected pattern
        LIMIT: Quota rejection
        DATABASE: Query or connection failure
        STORAGE: Blob store failure
        CONFIG: Missing or invalid settings and schema definitions
        INTERNAL: Programmer error
    """

    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    PARSE = "PARSE"

    GEOMETRY = "GEOMETRY"
    LIMIT = "LIMIT"

    DATABASE = "DATABASE"
    STORAGE = "STORAGE"

    CONFIG = "CONFIG"

    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        entity_type: Code name of the entity type involved
        object_id: Identity of the object involved
        field_code: Field code involved
        attachment: Attachment guid involved
        metadata: Additional key-value pairs
    """

    entity_type: str | None = None
    object_id: int | None = None
    field_code: str | None = None
    attachment: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity_type", "object_id", "field_code", "attachment"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ObjectSpineError(Exception):
    """
    Base exception for all object-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so raising
    code only supplies the message and, where known, the context.

    Examples:
        >>> error = ObjectSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
        >>> ObjectSpineError("x", category=ErrorCategory.DATABASE).to_dict()["category"]
        'DATABASE'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ObjectSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ObjectNotFoundError("missing").with_context(
                entity_type="asset",
                object_id=7,
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# NOT FOUND
# =============================================================================


class NotFoundError(ObjectSpineError):
    """A requested resource does not exist."""

    default_category = ErrorCategory.NOT_FOUND


class EntityTypeNotFoundError(NotFoundError):
    """No entity type registered under the requested code."""

    def __init__(self, code_name: str, **kwargs: Any):
        super().__init__(f"Entity type not found: {code_name}", **kwargs)
        self.context.entity_type = code_name


class ObjectNotFoundError(NotFoundError):
    """No object with the requested id or guid."""

    pass


class FieldNotFoundError(NotFoundError):
    """Field code unknown on the entity type."""

    def __init__(self, code_name: str, **kwargs: Any):
        super().__init__(f"Field not found: {code_name}", **kwargs)
        self.context.field_code = code_name


class AttachmentNotFoundError(NotFoundError):
    """Attachment guid unknown on the object."""

    pass


# =============================================================================
# CONFLICT
# =============================================================================


class ConflictError(ObjectSpineError):
    """Requested transition conflicts with current state."""

    default_category = ErrorCategory.CONFLICT


class ObjectIsActiveError(ConflictError):
    """Activate requested on an object that is already ACTIVE."""

    pass


class AttachmentAlreadyExistsError(ConflictError):
    """Attachment guid already present on the object."""

    pass


# =============================================================================
# VALIDATION
# =============================================================================


@dataclass(frozen=True, slots=True)
class FieldViolation:
    """One rejected field.

    Attributes:
        code: Machine-readable violation code
            (``entity.object.field.is.null``, ...)
        field: Display name of the field
        message: Human-readable description
    """

    code: str
    field: str
    message: str = ""


class ValidationError(ObjectSpineError):
    """
    Accumulated field violations.

    Never retryable, the object must be fixed by the caller.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        violations: list[FieldViolation] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.violations = list(violations or [])

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.violations:
            result["violations"] = [
                {"code": v.code, "field": v.field, "message": v.message}
                for v in self.violations
            ]
        return result


# =============================================================================
# INPUT / GEOMETRY / LIMITS
# =============================================================================


class UnprocessableError(ObjectSpineError):
    """Input that cannot be parsed or converted."""

    default_category = ErrorCategory.PARSE


class GeometryError(ObjectSpineError):
    """Spatial query or driver output failure."""

    default_category = ErrorCategory.GEOMETRY


class LimitExceededError(ObjectSpineError):
    """Quota rejection, raised before any write."""

    default_category = ErrorCategory.LIMIT

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        delta: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.key = key
        self.delta = delta

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.key is not None:
            result["key"] = self.key
        if self.delta is not None:
            result["delta"] = self.delta
        return result


# =============================================================================
# DATABASE / STORAGE
# =============================================================================


class DatabaseError(ObjectSpineError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE


class QueryError(DatabaseError):
    """SQL statement failed."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Connection could not be opened or was lost."""

    default_retryable = True


class StorageError(ObjectSpineError):
    """Blob store failure."""

    default_category = ErrorCategory.STORAGE


# =============================================================================
# CONFIG / SCHEMA / PROGRAMMER ERRORS
# =============================================================================


class ConfigError(ObjectSpineError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG


class SchemaError(ConfigError):
    """Invalid entity-type definition."""

    pass


class UnsupportedFieldTypeError(ObjectSpineError):
    """Unknown field type or standard field reached a dispatch table."""

    default_category = ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ObjectSpineError",
    # Not found
    "NotFoundError",
    "EntityTypeNotFoundError",
    "ObjectNotFoundError",
    "FieldNotFoundError",
    "AttachmentNotFoundError",
    # Conflict
    "ConflictError",
    "ObjectIsActiveError",
    "AttachmentAlreadyExistsError",
    # Validation
    "FieldViolation",
    "ValidationError",
    # Input
    "UnprocessableError",
    "GeometryError",
    "LimitExceededError",
    # Database
    "DatabaseError",
    "QueryError",
    "DatabaseConnectionError",
    "StorageError",
    # Config
    "ConfigError",
    "SchemaError",
    "UnsupportedFieldTypeError",
]
