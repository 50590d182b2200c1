"""Filter, pagination and aggregation inputs for entity queries."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from objectspine.core.errors import UnprocessableError
from objectspine.model.fields import is_safe_identifier
from objectspine.objects.conditions import Condition

T = TypeVar("T")


class SortType(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class AggregateFunction(str, Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    AVG = "AVG"


@dataclass(frozen=True)
class AggregateSpec:
    """One aggregate output column; ``field`` may be omitted only for COUNT."""

    function: AggregateFunction
    field: str | None = None
    alias: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "function", AggregateFunction(self.function))
        if self.field is None and self.function is not AggregateFunction.COUNT:
            raise UnprocessableError(f"{self.function.value} aggregate needs a field")
        if self.alias and not is_safe_identifier(self.alias):
            raise UnprocessableError(f"Aggregate alias is not a plain identifier: {self.alias!r}")

    @property
    def output_name(self) -> str:
        if self.alias:
            return self.alias
        if self.field is None:
            return "count"
        return f"{self.function.value.lower()}_{self.field.lower()}"


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page number and positive page size."""

    page: int
    size: int

    def __post_init__(self) -> None:
        if self.page < 0:
            raise UnprocessableError(f"Page number must be >= 0, got {self.page}")
        if self.size <= 0:
            raise UnprocessableError(f"Page size must be > 0, got {self.size}")

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass
class Page(Generic[T]):
    """One page of results; ``total`` counts every match of the filter."""

    content: list[T]
    total: int
    page: int = 0
    size: int | None = None

    @classmethod
    def unpaged(cls, content: list[T]) -> Page[T]:
        return cls(content=content, total=len(content), page=0, size=None)

    @property
    def total_pages(self) -> int:
        if not self.size:
            return 1 if self.content else 0
        return math.ceil(self.total / self.size)

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    def __iter__(self):
        return iter(self.content)

    def __len__(self) -> int:
        return len(self.content)


@dataclass
class EntityObjectFilter:
    """Client filter: condition, single sort field, optional page, aggregation.

    Attributes:
        condition: Parsed condition tree, spliced into WHERE
        fields: Field codes to select (``None`` = every field of the type)
        sort_field: Single sort field; unknown codes are ignored
        sort_type: Sort direction
        page: Page request; ``None`` returns every match and skips COUNT
        aggregates: Aggregate outputs; switches results to search records
        group_by: Field codes to group aggregates by
        srid: Output CRS for geometry fields
    """

    condition: Condition | None = None
    fields: list[str] | None = None
    sort_field: str | None = None
    sort_type: SortType = SortType.ASC
    page: PageRequest | None = None
    aggregates: list[AggregateSpec] = field(default_factory=list)
    group_by: list[str] = field(default_factory=list)
    srid: int | None = None


__all__ = [
    "AggregateFunction",
    "AggregateSpec",
    "EntityObjectFilter",
    "Page",
    "PageRequest",
    "SortType",
]
