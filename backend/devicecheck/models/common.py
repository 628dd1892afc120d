"""Shared model plumbing: camelCase documents, UTC timestamps, pagination."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Annotated, Any, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def _parse_datetime(value: Any) -> Any:
    # Bare dates ("2024-01-10") are taken as midnight UTC.
    if isinstance(value, str) and len(value) == 10:
        return datetime.combine(date.fromisoformat(value), datetime.min.time(), tzinfo=timezone.utc)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, datetime.min.time(), tzinfo=timezone.utc)
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_utc(value: datetime) -> str:
    """Fixed-width ISO-8601 so stored timestamps sort lexicographically."""
    return _as_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


UtcDatetime = Annotated[
    datetime,
    BeforeValidator(_parse_datetime),
    AfterValidator(_as_utc),
    PlainSerializer(format_utc, return_type=str, when_used="json"),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """camelCase on the wire and in the store, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class Pagination(DocumentModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)


class Page(DocumentModel, Generic[T]):
    data: list[T]
    pagination: Pagination


class DeleteResult(DocumentModel):
    message: str


def page_window(page: int, limit: int | None, default: int, maximum: int) -> tuple[int, int, int]:
    """Clamp paging input; returns (page, limit, skip)."""
    page = max(page, 1)
    limit = default if not limit or limit < 1 else min(limit, maximum)
    return page, limit, (page - 1) * limit
