"""
Shared model base and pagination types.

Python attributes are snake_case; the wire format and both storage engines
use camelCase names generated from them.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Generic, List, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")

SortOrder = Literal["asc", "desc"]


def to_millis(value: datetime) -> datetime:
    """Truncate to milliseconds, the precision of a BSON date."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def utcnow() -> datetime:
    """Current UTC time truncated to milliseconds."""
    return to_millis(datetime.now(timezone.utc))


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PageQuery(CamelModel):
    """Pagination and sort parameters shared by every list operation."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: str = "createdAt"
    sort_order: SortOrder = "desc"


class Page(CamelModel, Generic[T]):
    items: List[T]
    page: int
    limit: int
    total: int
    page_count: int

    @classmethod
    def build(cls, items: List[T], page: int, limit: int, total: int) -> "Page[T]":
        return cls(
            items=items,
            page=page,
            limit=limit,
            total=total,
            page_count=math.ceil(total / limit) if limit else 0,
        )
