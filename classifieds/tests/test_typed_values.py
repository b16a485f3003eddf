"""Test typed field value storage on AdFieldValue."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from classifieds.fields.types import FieldType
from classifieds.fields.values import (
    VALUE_COLUMNS,
    BooleanValue,
    DateValue,
    FieldDefinitionMissingError,
    InvalidFieldValueError,
    MultiValue,
    NumberValue,
    OptionRefValue,
    TextValue,
    decode,
    encode,
    present,
    to_columns,
)
from classifieds.models.ad import Ad, AdFieldValue
from classifieds.models.category import CategoryField


def _populated(fv: AdFieldValue) -> list[str]:
    return [column for column in VALUE_COLUMNS if getattr(fv, column) is not None]


@pytest.mark.parametrize("field_type,raw,expected", [
    (FieldType.TEXT, "Toyota", TextValue("Toyota")),
    (FieldType.NUMBER, "12.9", NumberValue(12)),
    (FieldType.NUMBER, 2019, NumberValue(2019)),
    (FieldType.DATE, "2024-03-01T10:00:00Z", DateValue(date(2024, 3, 1))),
    (FieldType.DATE, "2024/03/01", DateValue(date(2024, 3, 1))),
    (FieldType.BOOLEAN, "off", BooleanValue(False)),
    (FieldType.BOOLEAN, "yes", BooleanValue(True)),
    (FieldType.CHECKBOX, "3", MultiValue((3,))),
    (FieldType.CHECKBOX, ["1", 2], MultiValue((1, 2))),
    (FieldType.SELECT, "9", OptionRefValue(9)),
])
def test_encode(field_type, raw, expected):
    assert encode(field_type, raw) == expected


def test_encode_blank_is_no_value():
    assert encode(FieldType.TEXT, "   ") is None
    assert encode(FieldType.NUMBER, None) is None
    assert encode(FieldType.CHECKBOX, None) == MultiValue(())


def test_encode_rejects_garbage():
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.NUMBER, "many")
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.DATE, "yesterday")
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.DECIMAL, "nan")


def test_encode_rejects_values_outside_storage_range():
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.NUMBER, "1e20")
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.NUMBER, 10**20)
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.SELECT, 2**40)
    with pytest.raises(InvalidFieldValueError):
        encode(FieldType.DECIMAL, 1e11)
    assert encode(FieldType.NUMBER, 2_147_483_647) == NumberValue(2_147_483_647)


def test_to_columns_populates_exactly_one_column():
    columns = to_columns(DateValue(date(2024, 3, 1)))
    assert [c for c, v in columns.items() if v is not None] == ["value_date"]
    assert all(v is None for v in to_columns(None).values())


def test_decode_round_trip_and_present():
    value = encode(FieldType.DATE, "2024-03-01")
    assert decode(FieldType.DATE, to_columns(value)) == value
    assert present(value) == "2024-03-01"
    assert present(encode(FieldType.CHECKBOX, [4, 5])) == [4, 5]


def test_present_option_without_loaded_row_is_bare_id():
    assert present(OptionRefValue(9)) == 9


def test_set_value_requires_loaded_field():
    fv = AdFieldValue(ad_id=1, category_field_id=1)
    with pytest.raises(FieldDefinitionMissingError):
        fv.set_value("x")


@pytest.mark.asyncio
async def test_set_value_clears_other_columns(db: AsyncSession, cars):
    ad = Ad(category_id=cars.category.id, title="Clean sedan", description="x" * 30, field_values=[])
    db.add(ad)
    await db.flush()

    fv = AdFieldValue(ad=ad, category_field=cars.fields["notes"])
    fv.value_integer = 5
    fv.value_json = [1]
    fv.set_value("Full service history")

    assert _populated(fv) == ["value_text"]
    assert fv.get_value() == "Full service history"


@pytest.mark.asyncio
async def test_values_round_trip_through_database(db: AsyncSession, cars):
    red = cars.options["Red"]
    sunroof = cars.options["Sunroof"]
    ad = Ad(category_id=cars.category.id, title="Clean sedan", description="x" * 30, field_values=[])
    db.add(ad)
    await db.flush()

    stmt = (
        select(CategoryField)
        .where(CategoryField.category_id == cars.category.id)
        .options(selectinload(CategoryField.options))
    )
    fields = {f.name: f for f in (await db.execute(stmt)).scalars().all()}
    raw = {
        "color": str(red.id),
        "year": "2019",
        "features": [sunroof.id],
        "registered_on": "2019-06-30",
        "warranty": "false",
        "seller_email": "seller@example.com",
    }
    for name, value in raw.items():
        fv = AdFieldValue(ad=ad, category_field=fields[name])
        db.add(fv)
        fv.set_value(value)
    await db.commit()

    stmt = (
        select(AdFieldValue)
        .where(AdFieldValue.ad_id == ad.id)
        .options(
            selectinload(AdFieldValue.category_field).selectinload(CategoryField.options),
            selectinload(AdFieldValue.selected_option),
        )
        .execution_options(populate_existing=True)
    )
    stored = {fv.category_field.name: fv for fv in (await db.execute(stmt)).scalars().all()}

    for fv in stored.values():
        assert len(_populated(fv)) == 1
    assert stored["color"].get_value() == {"id": red.id, "value": "red", "label": "Red"}
    assert stored["year"].get_value() == 2019
    assert stored["features"].get_value() == [sunroof.id]
    assert stored["registered_on"].get_value() == "2019-06-30"
    assert stored["warranty"].get_value() is False
    assert stored["seller_email"].get_value() == "seller@example.com"
