"""Test model properties and relationships."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.fields.types import FieldType
from classifieds.models.category import Category, CategoryField, CategoryFieldOption


def test_internal_id_hint():
    assert Category(metadata_json={"raw_data": {"id": 23}}).internal_id_hint == "23"
    assert Category(metadata_json={"raw_data": {"id": ""}}).internal_id_hint is None
    assert Category(metadata_json={"raw_data": "garbage"}).internal_id_hint is None
    assert Category(metadata_json={}).internal_id_hint is None


def test_field_key_prefers_external_id():
    assert CategoryField(external_id="501", name="make").key == "501"
    assert CategoryField(external_id=None, name="make").key == "make"


def test_custom_rules():
    field = CategoryField(validation_rules=" min:0 | max:10 ||")
    assert field.custom_rules == ["min:0", "max:10"]
    assert CategoryField(validation_rules=None).custom_rules == []


def test_has_options():
    assert CategoryField(field_type=FieldType.RADIO).has_options
    assert not CategoryField(field_type=FieldType.DATE).has_options


@pytest.mark.asyncio
async def test_category_tree_relationships(db: AsyncSession):
    parent = Category(external_id="129", name="Vehicles", slug="vehicles")
    db.add(parent)
    await db.flush()
    child = Category(external_id="1453", name="Cars", slug="cars", parent_id=parent.id)
    db.add(child)
    await db.commit()

    result = await db.execute(select(Category).where(Category.external_id == "1453"))
    fetched = result.scalar_one()
    assert fetched.parent_id == parent.id
    assert fetched.metadata_json == {}


@pytest.mark.asyncio
async def test_deleting_field_deletes_options(db: AsyncSession, cars):
    color = cars.fields["color"]

    await db.delete(color)
    await db.commit()

    result = await db.execute(select(CategoryFieldOption).where(CategoryFieldOption.label == "Red"))
    assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_field_type_round_trips_as_string(db: AsyncSession, cars):
    result = await db.execute(select(CategoryField).where(CategoryField.name == "features"))
    field = result.scalar_one()
    assert field.field_type is FieldType.CHECKBOX
