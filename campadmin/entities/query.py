from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel

PredicateOp = Literal["eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is"]


@dataclass(frozen=True)
class Predicate:
    column: str
    op: PredicateOp
    value: Any


@dataclass(frozen=True)
class SortSpec:
    field: str
    descending: bool = False

    def toggled(self) -> SortSpec:
        return SortSpec(self.field, not self.descending)


@dataclass
class ListQuery:
    predicates: list[Predicate] = field(default_factory=list)
    search: str = ""
    search_fields: tuple[str, ...] | None = None
    sort: SortSpec | None = None
    page: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return max(self.page - 1, 0) * self.page_size


@dataclass
class ListResult:
    rows: list[BaseModel]
    total_count: int
