"""Ad service - CRUD and dynamic field persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..fields.values import normalize_input
from ..models.ad import Ad, AdFieldValue
from ..models.category import Category, CategoryField

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Ad.created_at,
    "price": Ad.price,
    "published_at": Ad.published_at,
    "views_count": Ad.views_count,
}


def _ad_load_options() -> list:
    return [
        selectinload(Ad.category),
        selectinload(Ad.field_values)
        .selectinload(AdFieldValue.category_field)
        .selectinload(CategoryField.options),
        selectinload(Ad.field_values).selectinload(AdFieldValue.selected_option),
    ]


async def get_ad(db: AsyncSession, ad_id: int) -> Ad | None:
    """Get a single ad with its category and field values loaded."""
    stmt = (
        select(Ad)
        .where(Ad.id == ad_id)
        .options(*_ad_load_options())
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_ads(
    db: AsyncSession,
    *,
    category_id: int | None = None,
    search: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    offset: int = 0,
    limit: int = 15,
) -> tuple[list[Ad], int]:
    """Active, unexpired ads with optional filters. Returns (ads, total)."""
    now = datetime.now(timezone.utc)
    stmt = select(Ad).where(
        Ad.status == "active",
        or_(Ad.expires_at.is_(None), Ad.expires_at > now),
    )
    if category_id is not None:
        stmt = stmt.where(Ad.category_id == category_id)
    if search:
        q = f"%{search}%"
        stmt = stmt.where(or_(Ad.title.ilike(q), Ad.description.ilike(q)))
    if min_price is not None:
        stmt = stmt.where(Ad.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(Ad.price <= max_price)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    column = SORTABLE_COLUMNS.get(sort_by, Ad.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    stmt = stmt.options(*_ad_load_options()).order_by(ordering, Ad.id.desc())
    stmt = stmt.offset(offset).limit(limit)
    ads = list((await db.execute(stmt)).scalars().all())
    return ads, total


async def _save_dynamic_fields(
    db: AsyncSession, ad: Ad, category_id: int, field_data: dict[str, Any]
) -> None:
    """Upsert or delete one AdFieldValue per payload key.

    Keys absent from ``field_data`` are left alone. An explicit empty value
    deletes the stored value. Does not commit.
    """
    stmt = (
        select(CategoryField)
        .where(CategoryField.category_id == category_id)
        .options(selectinload(CategoryField.options))
    )
    fields = list((await db.execute(stmt)).scalars().all())

    stmt = select(AdFieldValue).where(AdFieldValue.ad_id == ad.id)
    existing = {fv.category_field_id: fv for fv in (await db.execute(stmt)).scalars().all()}

    known: set[str] = set()
    for field in fields:
        key = field.key
        known.add(key)
        if key not in field_data:
            continue

        raw = normalize_input(field_data[key])
        row = existing.get(field.id)
        if raw is None or (isinstance(raw, (list, tuple)) and not raw):
            if row is not None:
                await db.delete(row)
                logger.debug("Deleted field value %s on ad %s", key, ad.id)
            continue

        if row is None:
            row = AdFieldValue(ad=ad, category_field=field)
            db.add(row)
        else:
            row.category_field = field
        row.set_value(raw)
        logger.debug("Saved field value %s (%s) on ad %s", key, field.field_type, ad.id)

    for key in field_data:
        if key not in known:
            logger.warning("Ignoring unknown field key %r for category %s", key, category_id)

    await db.flush()


async def create_ad(
    db: AsyncSession,
    category: Category,
    ad_data: dict[str, Any],
    field_data: dict[str, Any] | None = None,
) -> Ad:
    """Create an ad and its field values in one transaction."""
    category_id = category.id
    try:
        ad = Ad(
            category_id=category_id,
            title=ad_data["title"],
            description=ad_data["description"],
            price=ad_data.get("price"),
            status="active",
            published_at=datetime.now(timezone.utc),
            field_values=[],
        )
        db.add(ad)
        await db.flush()
        if field_data:
            await _save_dynamic_fields(db, ad, category_id, field_data)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Failed to create ad in category %s", category_id)
        raise

    ad_id = ad.id
    logger.info("Ad %s created in category %s", ad_id, category_id)
    return await get_ad(db, ad_id)


async def update_ad(
    db: AsyncSession,
    ad: Ad,
    ad_data: dict[str, Any],
    field_data: dict[str, Any] | None = None,
) -> Ad:
    """Update base columns and, when ``field_data`` is given, field values."""
    ad_id = ad.id
    try:
        for attr in ("title", "description", "status"):
            if ad_data.get(attr) is not None:
                setattr(ad, attr, ad_data[attr])
        if "price" in ad_data:
            ad.price = ad_data["price"]
        if field_data is not None:
            await _save_dynamic_fields(db, ad, ad.category_id, field_data)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Failed to update ad %s", ad_id)
        raise

    logger.info("Ad %s updated", ad_id)
    return await get_ad(db, ad_id)


async def delete_ad(db: AsyncSession, ad: Ad) -> None:
    ad_id = ad.id
    await db.delete(ad)
    await db.commit()
    logger.info("Ad %s deleted", ad_id)


async def increment_views(db: AsyncSession, ad: Ad) -> int:
    """Atomically bump the view counter; returns the new count.

    The UPDATE also fires ``updated_at``'s onupdate, so both are reloaded.
    """
    await db.execute(
        update(Ad).where(Ad.id == ad.id).values(views_count=Ad.views_count + 1)
    )
    await db.commit()
    await db.refresh(ad, ["views_count", "updated_at"])
    return ad.views_count
