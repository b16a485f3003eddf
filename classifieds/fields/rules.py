"""Request-time validation rules derived from a category's field definitions.

Rules are lists of string tokens (``required``, ``numeric``, ``max:255`` ...).
They are built per field by ``field_rule_tokens`` and evaluated against a
payload's ``fields`` object by ``validate_fields``. Checkbox fields get two
entries: ``<key>`` for the list itself and ``<key>.*`` for each element.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.ad import Ad, AdFieldValue
from ..models.category import Category, CategoryField
from ..schemas.ad import AdCreate, AdUpdate
from .types import FieldType, ensure_exhaustive
from .values import (
    DECIMAL_MAX,
    INTEGER_MAX,
    INTEGER_MIN,
    InvalidFieldValueError,
    encode,
    normalize_input,
)

logger = logging.getLogger(__name__)

_TYPE_TOKENS: dict[FieldType, tuple[str, ...]] = {
    FieldType.TEXT: ("string",),
    FieldType.TEXTAREA: ("string",),
    FieldType.NUMBER: ("numeric",),
    FieldType.DECIMAL: ("numeric",),
    FieldType.EMAIL: ("email", "max:255"),
    FieldType.URL: ("url", "max:2048"),
    FieldType.DATE: ("date",),
    FieldType.BOOLEAN: ("boolean",),
    FieldType.SELECT: ("integer", "in_options"),
    FieldType.RADIO: ("integer", "in_options"),
    FieldType.CHECKBOX: ("array",),
}
ensure_exhaustive(_TYPE_TOKENS, "rule builder")

ELEMENT_TOKENS: tuple[str, ...] = ("integer", "in_options")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_URL_SCHEMES = {"http", "https", "ftp"}
_BOOLEAN_STRINGS = {"true", "false", "1", "0", "yes", "no", "on", "off"}
_NUMERIC_TOKENS = {"numeric", "integer"}


class PayloadValidationError(Exception):
    """Raised with a ``{key: [messages]}`` map when a payload fails validation."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__("Validation failed")


@dataclass
class RuleSet:
    rules: list[str]
    label: str
    field_type: FieldType
    option_ids: frozenset[int] = frozenset()
    element: bool = False

    @property
    def numeric(self) -> bool:
        return any(token in _NUMERIC_TOKENS for token in self.rules)


@dataclass
class ValidatedAd:
    data: dict[str, Any]
    fields: dict[str, Any] | None
    category: Category


def field_rule_tokens(
    field: CategoryField, *, required: bool | None = None, filled: bool = False
) -> dict[str, list[str]]:
    """Rule tokens for one field, keyed by its canonical payload key.

    ``filled`` marks a field that may be omitted but not emptied; it only
    applies when the field is not required.
    """
    if required is None:
        required = field.is_required
    field_type = FieldType(field.field_type)
    key = field.key

    if required:
        presence = "required"
    else:
        presence = "filled" if filled else "nullable"
    tokens = [presence, *_TYPE_TOKENS[field_type]]
    if field_type.is_multiple and required:
        tokens.append("min:1")
    tokens.extend(field.custom_rules)

    rules = {key: tokens}
    if field_type.is_multiple:
        rules[f"{key}.*"] = list(ELEMENT_TOKENS)
    return rules


async def derive_rules(
    db: AsyncSession, category_id: int, ad: Ad | None = None
) -> dict[str, RuleSet]:
    """Rule sets for every field of a category.

    With ``ad`` given (an update), a mandatory field is only required when the
    ad holds no value for it yet. Otherwise it may be omitted but not emptied.
    """
    stmt = (
        select(CategoryField)
        .where(CategoryField.category_id == category_id)
        .options(selectinload(CategoryField.options))
        .order_by(CategoryField.position, CategoryField.id)
    )
    fields = list((await db.execute(stmt)).scalars().all())

    stored: set[int] = set()
    if ad is not None:
        stmt = select(AdFieldValue.category_field_id).where(AdFieldValue.ad_id == ad.id)
        stored = set((await db.execute(stmt)).scalars().all())

    rules: dict[str, RuleSet] = {}
    for field in fields:
        required = field.is_required and field.id not in stored
        option_ids = frozenset(option.id for option in field.options)
        tokens_by_key = field_rule_tokens(field, required=required, filled=field.is_required)
        for key, tokens in tokens_by_key.items():
            rules[key] = RuleSet(
                rules=tokens,
                label=field.label or field.key,
                field_type=FieldType(field.field_type),
                option_ids=option_ids,
                element=key.endswith(".*"),
            )
    return rules


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (list, tuple, dict)) and len(value) == 0)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


def _storage_bounds(field_type: FieldType) -> tuple[float, float] | None:
    if field_type is FieldType.NUMBER:
        return INTEGER_MIN, INTEGER_MAX
    if field_type is FieldType.DECIMAL:
        return -DECIMAL_MAX, DECIMAL_MAX
    return None


def _in_storage_range(value: Any, field_type: FieldType) -> bool:
    """Whether a numeric value fits the column its field type is stored in."""
    bounds = _storage_bounds(field_type)
    if bounds is None:
        return True
    number = value if isinstance(value, int) else float(value.strip() if isinstance(value, str) else value)
    if field_type is FieldType.NUMBER:
        number = math.trunc(number)
    return bounds[0] <= number <= bounds[1]


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    if isinstance(value, str):
        return bool(_INTEGER_RE.match(value.strip()))
    return False


def _is_date(value: Any) -> bool:
    try:
        return encode(FieldType.DATE, value) is not None
    except InvalidFieldValueError:
        return False


def _is_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        return value in (0, 1)
    if isinstance(value, str):
        return value.strip().lower() in _BOOLEAN_STRINGS
    return False


def _is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in _URL_SCHEMES and bool(parsed.netloc)


def _size(value: Any, rule_set: RuleSet) -> float:
    if rule_set.numeric:
        return float(value)
    if isinstance(value, (list, tuple)):
        return len(value)
    return len(str(value))


def _fmt(bound: float) -> str:
    return str(int(bound)) if bound.is_integer() else str(bound)


def _check_token(token: str, value: Any, rule_set: RuleSet) -> str | None:
    """Error message when ``value`` fails ``token``, else None."""
    name, _, param = token.partition(":")
    label = rule_set.label

    if name in ("required", "nullable", "filled"):
        return None
    if name == "string":
        return None if isinstance(value, str) else f"The {label} must be a string."
    if name == "numeric":
        if not _is_number(value):
            return f"The {label} must be a number."
        if not _in_storage_range(value, rule_set.field_type):
            low, high = _storage_bounds(rule_set.field_type)
            return f"The {label} must be between {_fmt(float(low))} and {_fmt(float(high))}."
        return None
    if name == "integer":
        return None if _is_integer(value) else f"The {label} must be a valid number."
    if name == "email":
        ok = isinstance(value, str) and bool(_EMAIL_RE.match(value.strip()))
        return None if ok else f"The {label} must be a valid email address."
    if name == "url":
        return None if _is_url(value) else f"The {label} must be a valid URL."
    if name == "date":
        return None if _is_date(value) else f"The {label} must be a valid date."
    if name == "boolean":
        return None if _is_boolean(value) else f"The {label} field must be true or false."
    if name == "array":
        return None if isinstance(value, list) else f"The {label} must be a list of options."
    if name == "in_options":
        ok = _is_integer(value) and int(value) in rule_set.option_ids
        return None if ok else f"The selected {label} is invalid."
    if name in ("min", "max"):
        try:
            bound = float(param)
        except ValueError:
            logger.warning("Ignoring malformed rule token %r on %s", token, label)
            return None
        size = _size(value, rule_set)
        if name == "min" and size < bound:
            if rule_set.numeric:
                return f"The {label} must be at least {_fmt(bound)}."
            if isinstance(value, (list, tuple)):
                return f"The {label} must have at least {_fmt(bound)} items."
            return f"The {label} must be at least {_fmt(bound)} characters."
        if name == "max" and size > bound:
            if rule_set.numeric:
                return f"The {label} must not be greater than {_fmt(bound)}."
            if isinstance(value, (list, tuple)):
                return f"The {label} must not have more than {_fmt(bound)} items."
            return f"The {label} must not be greater than {_fmt(bound)} characters."
        return None

    logger.debug("Unknown rule token %r on %s", token, label)
    return None


def _first_failure(rule_set: RuleSet, value: Any) -> str | None:
    for token in rule_set.rules:
        message = _check_token(token, value, rule_set)
        if message is not None:
            return message
    return None


def validate_fields(
    rules: dict[str, RuleSet], fields: dict[str, Any] | None
) -> tuple[dict[str, Any], dict[str, list[str]]]:
    """Evaluate a ``fields`` payload against derived rules.

    Returns ``(validated, errors)``. ``validated`` holds only keys present in
    the payload; an explicit empty value is kept as ``None``. Error keys are
    canonical field keys, or ``<key>.<index>`` for checkbox elements.
    """
    fields = fields or {}
    validated: dict[str, Any] = {}
    errors: dict[str, list[str]] = {}

    for key in fields:
        if key not in rules or rules[key].element:
            logger.info("Dropping unknown field key %r", key)

    for key, rule_set in rules.items():
        if rule_set.element:
            continue
        required = "required" in rule_set.rules
        filled = "filled" in rule_set.rules
        if key not in fields:
            if required:
                errors[key] = [f"The {rule_set.label} field is required."]
            continue

        value = normalize_input(fields[key])
        if _is_empty(value):
            if required:
                errors[key] = [f"The {rule_set.label} field is required."]
            elif filled:
                errors[key] = [f"The {rule_set.label} field must have a value."]
            else:
                validated[key] = None
            continue

        message = _first_failure(rule_set, value)
        if message is not None:
            errors[key] = [message]
            continue

        element_rules = rules.get(f"{key}.*")
        if element_rules is not None:
            element_errors = {}
            for index, item in enumerate(value):
                element_message = _first_failure(element_rules, item)
                if element_message is not None:
                    element_errors[f"{key}.{index}"] = [element_message]
            if element_errors:
                errors.update(element_errors)
                continue

        validated[key] = value

    return validated, errors


def _pydantic_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        key = ".".join(str(part) for part in err["loc"]) or "body"
        errors.setdefault(key, []).append(err["msg"])
    return errors


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


async def validate_ad_payload(
    db: AsyncSession, payload: Any, *, ad: Ad | None = None
) -> ValidatedAd:
    """Validate base ad fields and the category's dynamic fields together.

    Without ``ad`` the payload is a create and must name its category. With
    ``ad`` it is an update against the ad's category, and dynamic fields are
    only checked when the payload carries a ``fields`` object. Raises
    ``PayloadValidationError`` with base errors and ``fields.<key>`` errors.
    """
    if not isinstance(payload, dict):
        raise PayloadValidationError({"body": ["The request body must be a JSON object."]})

    errors: dict[str, list[str]] = {}
    data: dict[str, Any] = {}
    schema = AdCreate if ad is None else AdUpdate
    try:
        data = schema.model_validate(payload).model_dump(exclude_unset=True)
    except ValidationError as exc:
        errors.update(_pydantic_errors(exc))

    category: Category | None = None
    if ad is None:
        category_id = _as_int(payload.get("category_id"))
        if category_id is not None and "category_id" not in errors:
            category = await db.get(Category, category_id)
            if category is None:
                errors["category_id"] = ["The selected category is invalid."]
    else:
        category = await db.get(Category, ad.category_id)

    raw_fields = payload.get("fields")
    if raw_fields is not None and not isinstance(raw_fields, dict):
        errors["fields"] = ["The fields must be an object."]

    validated_fields: dict[str, Any] | None = None
    check_fields = ad is None or "fields" in payload
    if category is not None and check_fields and "fields" not in errors:
        rules = await derive_rules(db, category.id, ad)
        validated_fields, field_errors = validate_fields(rules, raw_fields)
        errors.update({f"fields.{key}": messages for key, messages in field_errors.items()})

    if errors:
        logger.info("Ad payload rejected: %s", ", ".join(sorted(errors)))
        raise PayloadValidationError(errors)

    return ValidatedAd(data=data, fields=validated_fields, category=category)
