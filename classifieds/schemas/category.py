"""Category and field schema responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class CategoryNode(BaseModel):
    id: int
    external_id: str | None = None
    name: str
    slug: str
    parent_id: int | None = None
    position: int = 0
    icon: str | None = None
    children: list["CategoryNode"] = []


class OptionSchema(BaseModel):
    id: int
    external_id: str | None = None
    value: str
    label: str
    position: int = 0
    is_default: bool = False

    model_config = {"from_attributes": True}


class FieldSchema(BaseModel):
    id: int
    key: str
    name: str
    label: str
    field_type: str
    is_required: bool = False
    is_searchable: bool = False
    position: int = 0
    placeholder: str | None = None
    help_text: str | None = None
    unit: Any = None
    prefix: Any = None
    suffix: Any = None
    rules: dict[str, list[str]] = {}
    options: list[OptionSchema] = []


class CategorySchemaResponse(BaseModel):
    id: int
    external_id: str | None = None
    name: str
    slug: str
    description: str | None = None
    parent_id: int | None = None
    fields: list[FieldSchema] = []
