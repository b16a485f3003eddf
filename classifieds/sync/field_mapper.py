"""Mapping between upstream taxonomy payloads and local model attributes."""

from __future__ import annotations

import re
from typing import Any

from ..fields.types import FieldType
from ..fields.values import to_bool

# Upstream field type (lower-cased) -> local FieldType
FIELD_TYPE_MAP: dict[str, FieldType] = {
    "input": FieldType.TEXT,
    "string": FieldType.TEXT,
    "text": FieldType.TEXT,
    "textarea": FieldType.TEXTAREA,
    "integer": FieldType.NUMBER,
    "number": FieldType.NUMBER,
    "range": FieldType.NUMBER,
    "decimal": FieldType.DECIMAL,
    "float": FieldType.DECIMAL,
    "price": FieldType.DECIMAL,
    "select": FieldType.SELECT,
    "dropdown": FieldType.SELECT,
    "radio": FieldType.RADIO,
    "checkbox": FieldType.CHECKBOX,
    "multiselect": FieldType.CHECKBOX,
    "multiple_choice": FieldType.CHECKBOX,
    "date": FieldType.DATE,
    "email": FieldType.EMAIL,
    "url": FieldType.URL,
    "boolean": FieldType.BOOLEAN,
    "bool": FieldType.BOOLEAN,
    "toggle": FieldType.BOOLEAN,
}

# Upstream constraint key -> rule token name
_CONSTRAINT_TOKENS = (
    ("min", "min"),
    ("max", "max"),
    ("min_length", "min"),
    ("max_length", "max"),
)


def map_field_type(raw: Any) -> FieldType:
    """Local field type for an upstream type string; unknown types are text."""
    if raw is None:
        return FieldType.TEXT
    return FIELD_TYPE_MAP.get(str(raw).strip().lower(), FieldType.TEXT)


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").strip().lower()).strip("-")
    return slug or "category"


def _clean_id(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _render_bound(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def extract_validation_rules(field_data: dict[str, Any]) -> str | None:
    """Pipe-delimited custom rule tokens from upstream min/max constraints."""
    tokens = []
    for key, token in _CONSTRAINT_TOKENS:
        bound = _render_bound(field_data.get(key))
        if bound is not None:
            tokens.append(f"{token}:{bound}")
    return "|".join(tokens) if tokens else None


def category_external_id(data: dict[str, Any]) -> str | None:
    """Upstream identity of a category entry (``externalID``, else ``id``)."""
    return _clean_id(data.get("externalID")) or _clean_id(data.get("id"))


def category_parent_ref(data: dict[str, Any]) -> str | None:
    return _clean_id(data.get("parent_id")) or _clean_id(data.get("parentID"))


def category_attributes(data: dict[str, Any]) -> dict[str, Any]:
    """Category column values for an upstream category entry."""
    name = data.get("name") or "Unknown"
    slug = data.get("slug")
    return {
        "name": str(name),
        "slug": str(slug) if slug else _slugify(str(name)),
        "description": data.get("description"),
        "position": _int_or(data.get("order"), 0),
        "metadata_json": {
            "icon": data.get("icon"),
            "level": data.get("level"),
            "has_children": to_bool(data.get("has_children", False)),
            "raw_data": data,
        },
    }


def field_external_id(data: dict[str, Any]) -> str | None:
    return _clean_id(data.get("id")) or _clean_id(data.get("attribute"))


def field_attributes(data: dict[str, Any]) -> dict[str, Any]:
    """CategoryField column values for an upstream flat field entry."""
    attribute = str(data.get("attribute") or data.get("name") or "unknown_field")
    required = data.get("isMandatory", data.get("required", False))
    return {
        "name": attribute,
        "label": str(data.get("name") or data.get("label") or attribute),
        "field_type": map_field_type(data.get("filterType") or data.get("type")),
        "is_required": to_bool(required),
        "is_searchable": to_bool(data.get("searchable", False)),
        "position": _int_or(data.get("displayPriority", data.get("order")), 0),
        "validation_rules": extract_validation_rules(data),
        "placeholder": data.get("placeholder"),
        "help_text": data.get("help_text") or data.get("hint"),
        "metadata_json": {
            "unit": data.get("unit"),
            "suffix": data.get("suffix"),
            "prefix": data.get("prefix"),
            "raw_data": data,
        },
    }


def option_external_id(data: dict[str, Any]) -> str | None:
    return _clean_id(data.get("id")) or _clean_id(data.get("value"))


def option_attributes(data: dict[str, Any], position: int) -> dict[str, Any]:
    """CategoryFieldOption column values for an upstream choice entry."""
    value = data.get("value", data.get("label"))
    label = data.get("label", value)
    return {
        "value": "" if value is None else str(value),
        "label": "" if label is None else str(label),
        "position": _int_or(data.get("order"), position),
        "is_default": to_bool(data.get("default", False)),
        "metadata_json": {
            "icon": data.get("icon"),
            "color": data.get("color"),
            "raw_data": data,
        },
    }


def _int_or(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
