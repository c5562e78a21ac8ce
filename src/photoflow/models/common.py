"""Pagination and health models shared by the read paths."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def normalize_pagination(page: int | None, limit: int | None) -> tuple[int, int]:
    """Clamp page to >= 1 and limit to [1, MAX_LIMIT]."""
    page = DEFAULT_PAGE if page is None else max(1, page)
    limit = DEFAULT_LIMIT if limit is None else min(max(1, limit), MAX_LIMIT)
    return page, limit


class Page(BaseModel, Generic[T]):
    """One page of a list query."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    data: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def meta(self) -> dict[str, int | bool]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


class HealthStatus(BaseModel):
    """Reachability of the three infrastructure dependencies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    queue_reachable: bool
    store_reachable: bool
    cache_reachable: bool

    @property
    def healthy(self) -> bool:
        return self.queue_reachable and self.store_reachable and self.cache_reachable
