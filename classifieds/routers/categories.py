"""Category tree and field schema endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.category import CategoryNode, CategorySchemaResponse
from ..services import category_svc

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("", response_model=list[CategoryNode])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await category_svc.category_tree(db)


@router.get("/{category_id}", response_model=CategorySchemaResponse)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    schema = await category_svc.get_category_schema(db, category_id)
    if schema is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return schema
