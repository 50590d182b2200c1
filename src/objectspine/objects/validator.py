"""Required-field validation with the partial-update exemption.

A new object is checked against every field of its type. An existing
object is checked only on the fields it carries, so an update may omit
fields without clearing them. Violations accumulate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from objectspine.core.errors import FieldViolation, ValidationError
from objectspine.model.entity_type import EntityType
from objectspine.model.fields import BaseField
from objectspine.objects.entity_object import EntityObject
from objectspine.objects.values import attribute_value_map

FIELD_IS_NULL = "entity.object.field.is.null"
MULTIPLE_FIELD_IS_EMPTY = "entity.object.multiple.field.is.empty"


@dataclass
class ValidationResult:
    violations: list[FieldViolation] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def reject(self, code: str, f: BaseField) -> None:
        self.violations.append(FieldViolation(code=code, field=f.name, message=f"{f.name}: {code}"))

    def require_valid(self, object_name: str = "object") -> None:
        """Raise :class:`ValidationError` carrying every violation."""
        if self.violations:
            fields = ", ".join(v.field for v in self.violations)
            raise ValidationError(
                f"Validation failed for {object_name}: {fields}",
                violations=list(self.violations),
            )


class EntityObjectValidator:
    def validate(self, entity_type: EntityType, obj: EntityObject) -> ValidationResult:
        result = ValidationResult()
        values = attribute_value_map(entity_type, obj)
        if obj.is_new():
            for f in entity_type.fields:
                self._validate_field(f, values.get(f), result)
        else:
            for f, value in values.items():
                self._validate_field(f, value, result)
        return result

    def _validate_field(self, f: BaseField, value: Any, result: ValidationResult) -> None:
        if not f.required:
            return
        if f.multiple:
            if not value:
                result.reject(MULTIPLE_FIELD_IS_EMPTY, f)
        elif value is None:
            result.reject(FIELD_IS_NULL, f)


__all__ = [
    "FIELD_IS_NULL",
    "MULTIPLE_FIELD_IS_EMPTY",
    "EntityObjectValidator",
    "ValidationResult",
]
