"""Async test fixtures for classifieds tests using SQLite."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from classifieds.database import get_db
from classifieds.fields.types import FieldType
from classifieds.models.base import Base
from classifieds.models.category import Category, CategoryField, CategoryFieldOption


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def cars(db: AsyncSession):
    """A 'Cars' category with one field of most types.

    Keys: color (select, required), year (number, required), mileage (number,
    min/max rules), features (checkbox), registered_on (date), warranty
    (boolean), seller_email (email), notes (textarea, keyed by name only).
    """
    category = Category(external_id="1453", name="Cars", slug="cars", metadata_json={})
    db.add(category)
    await db.flush()

    def add_field(ext_id, name, label, field_type, position, **kwargs):
        field = CategoryField(
            category=category,
            external_id=ext_id,
            name=name,
            label=label,
            field_type=field_type,
            position=position,
            metadata_json={},
            **kwargs,
        )
        db.add(field)
        return field

    color = add_field("color", "color", "Color", FieldType.SELECT, 1, is_required=True)
    year = add_field("year", "year", "Year", FieldType.NUMBER, 2, is_required=True)
    mileage = add_field(
        "mileage", "mileage", "Kilometers", FieldType.NUMBER, 3, validation_rules="min:0|max:1000000"
    )
    features = add_field("features", "features", "Extra Features", FieldType.CHECKBOX, 4)
    registered_on = add_field("registered_on", "registered_on", "Registered on", FieldType.DATE, 5)
    warranty = add_field("warranty", "warranty", "Warranty", FieldType.BOOLEAN, 6)
    seller_email = add_field("seller_email", "seller_email", "Seller email", FieldType.EMAIL, 7)
    notes = add_field(None, "notes", "Notes", FieldType.TEXTAREA, 8)
    await db.flush()

    options = {}
    for field, choices in (
        (color, [("red", "Red"), ("blue", "Blue")]),
        (features, [("sunroof", "Sunroof"), ("abs", "ABS"), ("navigation", "Navigation")]),
    ):
        for position, (value, label) in enumerate(choices):
            option = CategoryFieldOption(
                field=field, external_id=value, value=value, label=label,
                position=position, metadata_json={},
            )
            db.add(option)
            options[label] = option

    await db.commit()
    return SimpleNamespace(
        category=category,
        fields={
            "color": color, "year": year, "mileage": mileage, "features": features,
            "registered_on": registered_on, "warranty": warranty,
            "seller_email": seller_email, "notes": notes,
        },
        options=options,
    )


@pytest_asyncio.fixture
async def client(engine):
    """HTTPX async test client against the classifieds app."""
    from classifieds.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
