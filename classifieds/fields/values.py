"""Typed field values and their single-column storage mapping.

A field value is one of seven variants. Each variant owns exactly one storage
column of ``ad_field_value``; converting a variant to columns always yields a
row where every other typed column is ``None``.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, ClassVar, Mapping, Union

from .types import FieldType, ensure_exhaustive

VALUE_COLUMNS: tuple[str, ...] = (
    "value_text",
    "value_integer",
    "value_decimal",
    "value_date",
    "value_boolean",
    "value_json",
    "category_field_option_id",
)


class FieldDefinitionMissingError(RuntimeError):
    """Raised when a value is set without its category field loaded."""


class InvalidFieldValueError(ValueError):
    """Raised when raw input cannot be coerced to the field's type."""

    def __init__(self, field_type: FieldType, raw: Any, reason: str):
        self.field_type = field_type
        self.raw = raw
        self.reason = reason
        super().__init__(f"Cannot store {raw!r} as {field_type.value}: {reason}")


@dataclass(frozen=True)
class TextValue:
    value: str
    column: ClassVar[str] = "value_text"

    def storage(self) -> Any:
        return self.value

    def output(self) -> Any:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    value: int
    column: ClassVar[str] = "value_integer"

    def storage(self) -> Any:
        return self.value

    def output(self) -> Any:
        return self.value


@dataclass(frozen=True)
class DecimalValue:
    value: float
    column: ClassVar[str] = "value_decimal"

    def storage(self) -> Any:
        return self.value

    def output(self) -> Any:
        return self.value


@dataclass(frozen=True)
class DateValue:
    value: date
    column: ClassVar[str] = "value_date"

    def storage(self) -> Any:
        return self.value

    def output(self) -> Any:
        return self.value.isoformat()


@dataclass(frozen=True)
class BooleanValue:
    value: bool
    column: ClassVar[str] = "value_boolean"

    def storage(self) -> Any:
        return self.value

    def output(self) -> Any:
        return self.value


@dataclass(frozen=True)
class MultiValue:
    value: tuple[int, ...]
    column: ClassVar[str] = "value_json"

    def storage(self) -> Any:
        return list(self.value)

    def output(self) -> Any:
        return list(self.value)


@dataclass(frozen=True)
class OptionRefValue:
    value: int
    column: ClassVar[str] = "category_field_option_id"

    def storage(self) -> Any:
        return self.value

    def output(self) -> Any:
        return self.value


FieldValue = Union[
    TextValue, NumberValue, DecimalValue, DateValue, BooleanValue, MultiValue, OptionRefValue
]

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off"}
_DATE_FORMATS = ("%Y/%m/%d", "%Y.%m.%d")

# Storage limits: value_integer is a 32-bit INTEGER, value_decimal is NUMERIC(12, 2).
INTEGER_MIN = -2_147_483_648
INTEGER_MAX = 2_147_483_647
DECIMAL_MAX = 9_999_999_999.99


def normalize_input(raw: Any) -> Any:
    """Blank strings count as no value."""
    if isinstance(raw, str) and not raw.strip():
        return None
    return raw


def _to_int(raw: Any) -> int:
    """Truncating integer conversion ("12.9" -> 12) within the INTEGER column range."""
    number = _truncate(raw)
    if not INTEGER_MIN <= number <= INTEGER_MAX:
        raise ValueError("out of integer range")
    return number


def _truncate(raw: Any) -> int:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, (float, Decimal)):
        if not math.isfinite(float(raw)):
            raise ValueError("not a finite number")
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return int(text)
        except ValueError:
            number = float(text)
            if not math.isfinite(number):
                raise ValueError("not a finite number")
            return int(number)
    raise TypeError(f"unsupported type {type(raw).__name__}")


def _to_float(raw: Any) -> float:
    if isinstance(raw, (list, dict)):
        raise TypeError(f"unsupported type {type(raw).__name__}")
    number = float(raw.strip() if isinstance(raw, str) else raw)
    if not math.isfinite(number):
        raise ValueError("not a finite number")
    if abs(number) > DECIMAL_MAX:
        raise ValueError("out of decimal range")
    return number


def _to_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise TypeError(f"unsupported type {type(raw).__name__}")
    text = raw.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError("not a recognised date")


def to_bool(raw: Any) -> bool:
    """Truthy coercion where "false", "0", "no", "n" and "off" are false."""
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _FALSE_STRINGS:
            return False
        if normalized in _TRUE_STRINGS:
            return True
        return bool(normalized)
    return bool(raw)


def _to_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (list, dict)):
        return json.dumps(raw, ensure_ascii=False, default=str)
    return str(raw)


def _to_multi(raw: Any) -> tuple[int, ...]:
    items = raw if isinstance(raw, (list, tuple, set)) else [raw]
    return tuple(_to_int(item) for item in items if normalize_input(item) is not None)


_ENCODERS: dict[FieldType, Callable[[Any], FieldValue]] = {
    FieldType.TEXT: lambda raw: TextValue(_to_text(raw)),
    FieldType.TEXTAREA: lambda raw: TextValue(_to_text(raw)),
    FieldType.EMAIL: lambda raw: TextValue(_to_text(raw)),
    FieldType.URL: lambda raw: TextValue(_to_text(raw)),
    FieldType.NUMBER: lambda raw: NumberValue(_to_int(raw)),
    FieldType.DECIMAL: lambda raw: DecimalValue(_to_float(raw)),
    FieldType.DATE: lambda raw: DateValue(_to_date(raw)),
    FieldType.BOOLEAN: lambda raw: BooleanValue(to_bool(raw)),
    FieldType.CHECKBOX: lambda raw: MultiValue(_to_multi(raw)),
    FieldType.SELECT: lambda raw: OptionRefValue(_to_int(raw)),
    FieldType.RADIO: lambda raw: OptionRefValue(_to_int(raw)),
}
ensure_exhaustive(_ENCODERS, "value encoder")

_VARIANTS: dict[FieldType, type] = {
    FieldType.TEXT: TextValue,
    FieldType.TEXTAREA: TextValue,
    FieldType.EMAIL: TextValue,
    FieldType.URL: TextValue,
    FieldType.NUMBER: NumberValue,
    FieldType.DECIMAL: DecimalValue,
    FieldType.DATE: DateValue,
    FieldType.BOOLEAN: BooleanValue,
    FieldType.CHECKBOX: MultiValue,
    FieldType.SELECT: OptionRefValue,
    FieldType.RADIO: OptionRefValue,
}
ensure_exhaustive(_VARIANTS, "value decoder")


def encode(field_type: FieldType | str, raw: Any) -> FieldValue | None:
    """Coerce raw input into the variant for ``field_type``.

    ``None`` (after blank normalisation) means no value, except for checkbox
    fields where it becomes an empty selection.
    """
    ft = FieldType(field_type)
    raw = normalize_input(raw)
    if raw is None:
        return MultiValue(()) if ft is FieldType.CHECKBOX else None
    try:
        return _ENCODERS[ft](raw)
    except (TypeError, ValueError) as exc:
        raise InvalidFieldValueError(ft, raw, str(exc)) from exc


def to_columns(value: FieldValue | None) -> dict[str, Any]:
    """Storage columns for a value; every column but the variant's is None."""
    columns: dict[str, Any] = dict.fromkeys(VALUE_COLUMNS)
    if value is not None:
        columns[value.column] = value.storage()
    return columns


def decode(field_type: FieldType | str, columns: Mapping[str, Any]) -> FieldValue | None:
    """Rebuild the variant for ``field_type`` from its storage column."""
    variant = _VARIANTS[FieldType(field_type)]
    stored = columns.get(variant.column)
    if stored is None:
        return None
    if variant is MultiValue:
        return MultiValue(_to_multi(stored))
    if variant is DateValue:
        return DateValue(_to_date(stored))
    if variant is DecimalValue:
        return DecimalValue(float(stored))
    return variant(stored)


def present(value: FieldValue | None, option: Any = None) -> Any:
    """Client-facing output for a value.

    Option references render as ``{id, value, label}`` when the option row is
    available, otherwise as the bare option id.
    """
    if value is None:
        return None
    if isinstance(value, OptionRefValue) and option is not None:
        return {"id": option.id, "value": option.value, "label": option.label}
    return value.output()
