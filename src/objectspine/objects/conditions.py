"""
Condition tree spliced into the WHERE clause of entity queries.

A textual query language is parsed elsewhere; this module defines the
nodes it produces. Every node renders itself against a
:class:`ConditionContext` (implemented by the select builder), which
resolves field codes to SQL expressions and binds values. No value ever
reaches the SQL text.

Supported comparisons by field kind:

==================  ==========================================================
Field kind          Operators
==================  ==========================================================
scalar inner        EQ NE LT LE GT GE LIKE ILIKE IN BETWEEN IS_NULL NOT_NULL
multi-valued inner  EQ (contains) IS_NULL NOT_NULL
relation            EQ IN (target ids) IS_NULL NOT_NULL (no / any targets)
geometry            IS_NULL NOT_NULL
==================  ==========================================================

Examples:
    >>> cond = And(
    ...     Comparison("label", Op.ILIKE, "pump%"),
    ...     Or(Comparison("tags", Op.EQ, 1.0), Comparison("parts", Op.IS_NULL)),
    ... )

Tags:
    query, conditions, where, objectspine
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from objectspine.core.errors import UnprocessableError
from objectspine.model.fields import Field, FieldType, RelationField


class Op(str, Enum):
    EQ = "="
    NE = "<>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    LIKE = "LIKE"
    ILIKE = "ILIKE"
    IN = "IN"
    BETWEEN = "BETWEEN"
    IS_NULL = "IS NULL"
    NOT_NULL = "IS NOT NULL"


_BINARY_OPS = {Op.EQ, Op.NE, Op.LT, Op.LE, Op.GT, Op.GE}
_NULL_OPS = {Op.IS_NULL, Op.NOT_NULL}


class ConditionContext(Protocol):
    """What a condition needs from the query it is rendered into."""

    def resolve(self, code: str) -> Field: ...

    def column(self, f: Field) -> str: ...

    def bind(self, f: Field, value: Any, *, raw: bool = False) -> str: ...

    def ilike(self, column: str, placeholder: str) -> str: ...

    def array_contains(self, column: str, placeholder: str) -> str: ...

    def relation_exists(self, f: RelationField, target_placeholders: list[str] | None = None) -> str: ...


class Condition:
    """Base node."""

    def to_sql(self, ctx: ConditionContext) -> str:
        raise NotImplementedError

    def __and__(self, other: Condition) -> And:
        return And(self, other)

    def __or__(self, other: Condition) -> Or:
        return Or(self, other)

    def __invert__(self) -> Not:
        return Not(self)


@dataclass(frozen=True)
class Comparison(Condition):
    """``field <op> value`` on one field of the queried type."""

    field: str
    op: Op
    value: Any = None

    def to_sql(self, ctx: ConditionContext) -> str:
        f = ctx.resolve(self.field)
        op = Op(self.op)
        if isinstance(f, RelationField):
            return self._relation_sql(ctx, f, op)
        if f.field_type is FieldType.GEOMETRY and op not in _NULL_OPS:
            raise UnprocessableError(f"Operator {op.name} not supported on geometry field {f.code_name}")

        column = ctx.column(f)
        if op in _NULL_OPS:
            return f"{column} {op.value}"
        if f.multiple:
            if op is not Op.EQ:
                raise UnprocessableError(
                    f"Operator {op.name} not supported on multi-valued field {f.code_name}"
                )
            return ctx.array_contains(column, ctx.bind(f, self.value))
        if op in _BINARY_OPS:
            return f"{column} {op.value} {ctx.bind(f, self.value)}"
        if op is Op.LIKE:
            return f"{column} LIKE {ctx.bind(f, self.value, raw=True)}"
        if op is Op.ILIKE:
            return ctx.ilike(column, ctx.bind(f, self.value, raw=True))
        if op is Op.IN:
            values = self._values()
            if not values:
                return "1 = 0"
            return f"{column} IN ({', '.join(ctx.bind(f, v) for v in values)})"
        if op is Op.BETWEEN:
            values = self._values()
            if len(values) != 2:
                raise UnprocessableError(f"BETWEEN on {f.code_name} needs exactly two values")
            low = ctx.bind(f, values[0])
            high = ctx.bind(f, values[1])
            return f"{column} BETWEEN {low} AND {high}"
        raise UnprocessableError(f"Unsupported operator {op!r}")

    def _values(self) -> list[Any]:
        if isinstance(self.value, (list, tuple, set, frozenset)):
            return list(self.value)
        raise UnprocessableError(f"Operator on {self.field} needs a list of values")

    def _relation_sql(self, ctx: ConditionContext, f: RelationField, op: Op) -> str:
        if op is Op.IS_NULL:
            return f"NOT {ctx.relation_exists(f)}"
        if op is Op.NOT_NULL:
            return ctx.relation_exists(f)
        if op is Op.EQ:
            return ctx.relation_exists(f, [ctx.bind(f, self.value)])
        if op is Op.IN:
            values = self._values()
            if not values:
                return "1 = 0"
            return ctx.relation_exists(f, [ctx.bind(f, v) for v in values])
        raise UnprocessableError(f"Operator {op.name} not supported on relation field {f.code_name}")


class _Junction(Condition):
    keyword = ""

    def __init__(self, *conditions: Condition) -> None:
        self.conditions = tuple(c for c in conditions if c is not None)

    def to_sql(self, ctx: ConditionContext) -> str:
        if not self.conditions:
            return "1 = 1" if self.keyword == "AND" else "1 = 0"
        parts = [c.to_sql(ctx) for c in self.conditions]
        if len(parts) == 1:
            return parts[0]
        return "(" + f" {self.keyword} ".join(f"({p})" for p in parts) + ")"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.conditions == other.conditions  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.conditions))

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.conditions!r}"


class And(_Junction):
    keyword = "AND"


class Or(_Junction):
    keyword = "OR"


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    def to_sql(self, ctx: ConditionContext) -> str:
        return f"NOT ({self.condition.to_sql(ctx)})"


__all__ = [
    "And",
    "Comparison",
    "Condition",
    "ConditionContext",
    "Not",
    "Op",
    "Or",
]
