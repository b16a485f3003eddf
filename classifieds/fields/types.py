"""Closed set of category field types and the canonical field key."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Protocol


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DECIMAL = "decimal"
    DATE = "date"
    EMAIL = "email"
    URL = "url"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    BOOLEAN = "boolean"

    @property
    def has_options(self) -> bool:
        return self in OPTION_FIELD_TYPES

    @property
    def is_multiple(self) -> bool:
        return self is FieldType.CHECKBOX


OPTION_FIELD_TYPES = frozenset({FieldType.SELECT, FieldType.RADIO, FieldType.CHECKBOX})


class KeyedField(Protocol):
    id: Any
    external_id: str | None
    name: str | None


def _non_empty(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def canonical_field_key(field: KeyedField) -> str:
    """Payload key for a category field: external id, else name, else id.

    Every producer and consumer of field keys (rule derivation, value saving,
    API output) goes through this function.
    """
    return _non_empty(field.external_id) or _non_empty(field.name) or str(field.id)


def ensure_exhaustive(table: Mapping[FieldType, Any], concern: str) -> None:
    """Fail at import time when a per-type dispatch table misses a member."""
    missing = [ft.value for ft in FieldType if ft not in table]
    if missing:
        raise RuntimeError(f"{concern} has no handler for field type(s): {', '.join(missing)}")
