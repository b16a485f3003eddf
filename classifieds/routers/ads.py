"""Ad JSON API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..fields.rules import validate_ad_payload
from ..fields.types import FieldType
from ..models.ad import Ad, AdFieldValue
from ..schemas.ad import AdListResponse, AdResponse, CategorySummary, FieldValueResponse
from ..services import ad_svc

router = APIRouter(prefix="/api/v1/ads", tags=["ads"])


def _display_value(field, value: Any) -> Any:
    field_type = FieldType(field.field_type)
    if field_type in (FieldType.SELECT, FieldType.RADIO):
        return value.get("label") if isinstance(value, dict) else value
    if field_type is FieldType.CHECKBOX:
        selected = set(value or [])
        return [o.label for o in field.options if o.id in selected]
    return value


def _field_value_response(fv: AdFieldValue) -> FieldValueResponse:
    field = fv.category_field
    value = fv.get_value()
    return FieldValueResponse(
        key=field.key,
        field_name=field.name,
        field_label=field.label,
        field_type=FieldType(field.field_type).value,
        value=value,
        display_value=_display_value(field, value),
    )


def _ad_response(ad: Ad) -> AdResponse:
    return AdResponse(
        id=ad.id,
        category_id=ad.category_id,
        title=ad.title,
        description=ad.description,
        price=ad.price,
        status=ad.status,
        views_count=ad.views_count or 0,
        published_at=ad.published_at,
        expires_at=ad.expires_at,
        created_at=ad.created_at,
        updated_at=ad.updated_at,
        category=CategorySummary.model_validate(ad.category) if ad.category else None,
        fields=[_field_value_response(fv) for fv in ad.field_values],
    )


@router.get("", response_model=AdListResponse)
async def list_ads(
    category_id: int | None = None,
    search: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    limit = min(limit or settings.ads_default_limit, settings.ads_max_limit)
    ads, total = await ad_svc.list_ads(
        db,
        category_id=category_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        sort_order=sort_order,
        offset=offset,
        limit=limit,
    )
    return AdListResponse(
        items=[_ad_response(ad) for ad in ads], total=total, limit=limit, offset=offset
    )


@router.get("/{ad_id}", response_model=AdResponse)
async def get_ad(ad_id: int, db: AsyncSession = Depends(get_db)):
    ad = await ad_svc.get_ad(db, ad_id)
    if ad is None:
        raise HTTPException(status_code=404, detail="Ad not found")
    await ad_svc.increment_views(db, ad)
    return _ad_response(ad)


@router.post("", response_model=AdResponse, status_code=201)
async def create_ad(
    response: Response,
    payload: Any = Body(default=None),
    db: AsyncSession = Depends(get_db),
):
    validated = await validate_ad_payload(db, payload)
    ad = await ad_svc.create_ad(db, validated.category, validated.data, validated.fields)
    response.headers["Location"] = f"{router.prefix}/{ad.id}"
    return _ad_response(ad)


@router.patch("/{ad_id}", response_model=AdResponse)
async def update_ad(
    ad_id: int,
    payload: Any = Body(default=None),
    db: AsyncSession = Depends(get_db),
):
    ad = await ad_svc.get_ad(db, ad_id)
    if ad is None:
        raise HTTPException(status_code=404, detail="Ad not found")
    validated = await validate_ad_payload(db, payload, ad=ad)
    ad = await ad_svc.update_ad(db, ad, validated.data, validated.fields)
    return _ad_response(ad)


@router.delete("/{ad_id}")
async def delete_ad(ad_id: int, db: AsyncSession = Depends(get_db)):
    ad = await ad_svc.get_ad(db, ad_id)
    if ad is None:
        raise HTTPException(status_code=404, detail="Ad not found")
    await ad_svc.delete_ad(db, ad)
    return {"success": True, "message": "Ad deleted successfully"}
