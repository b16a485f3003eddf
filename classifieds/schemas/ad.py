"""Ad schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

UpdatableStatus = Literal["draft", "active", "sold", "expired"]


class AdCreate(BaseModel):
    category_id: int
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=20, max_length=5000)
    price: float | None = Field(default=None, ge=0, le=999999999.99)

    model_config = {"extra": "ignore"}


class AdUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=5, max_length=100)
    description: str | None = Field(default=None, min_length=20, max_length=5000)
    price: float | None = Field(default=None, ge=0, le=999999999.99)
    status: UpdatableStatus | None = None

    model_config = {"extra": "ignore"}


class FieldValueResponse(BaseModel):
    key: str
    field_name: str
    field_label: str
    field_type: str
    value: Any = None
    display_value: Any = None


class CategorySummary(BaseModel):
    id: int
    name: str
    slug: str

    model_config = {"from_attributes": True}


class AdResponse(BaseModel):
    id: int
    category_id: int
    title: str
    description: str
    price: float | None = None
    status: str
    views_count: int = 0
    published_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    category: CategorySummary | None = None
    fields: list[FieldValueResponse] = []


class AdListResponse(BaseModel):
    items: list[AdResponse]
    total: int
    limit: int
    offset: int
