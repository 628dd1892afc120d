"""Autocomplete suggestion corpus, one document per (field, value) pair."""

from __future__ import annotations

from pydantic import Field

from devicecheck.models.common import DocumentModel, UtcDatetime


class DropdownOptionCreate(DocumentModel):
    field_name: str = Field(..., min_length=1, max_length=200)
    value: str = Field(..., min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=100)


class DropdownOption(DocumentModel):
    id: str
    field_name: str
    value: str
    category: str | None = None
    usage_count: int = Field(default=0, ge=0)
    last_used_at: UtcDatetime | None = None
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
