"""Category service - tree listing and per-category field schema."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..fields.rules import field_rule_tokens
from ..models.category import Category, CategoryField
from ..schemas.category import CategoryNode, CategorySchemaResponse, FieldSchema, OptionSchema


async def list_categories(db: AsyncSession) -> list[Category]:
    stmt = select(Category).order_by(Category.position, Category.name)
    return list((await db.execute(stmt)).scalars().all())


def build_tree(categories: list[Category]) -> list[CategoryNode]:
    """Nest a flat category list by parent_id; orphans become roots."""
    nodes = {
        c.id: CategoryNode(
            id=c.id,
            external_id=c.external_id,
            name=c.name,
            slug=c.slug,
            parent_id=c.parent_id,
            position=c.position,
            icon=(c.metadata_json or {}).get("icon"),
        )
        for c in categories
    }
    roots: list[CategoryNode] = []
    for c in categories:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


async def category_tree(db: AsyncSession) -> list[CategoryNode]:
    return build_tree(await list_categories(db))


async def get_category_schema(db: AsyncSession, category_id: int) -> CategorySchemaResponse | None:
    """Category with its fields, options and rule tokens for form rendering."""
    stmt = (
        select(Category)
        .where(Category.id == category_id)
        .options(selectinload(Category.fields).selectinload(CategoryField.options))
    )
    category = (await db.execute(stmt)).scalar_one_or_none()
    if category is None:
        return None

    fields = []
    for field in category.fields:
        meta = field.metadata_json or {}
        fields.append(FieldSchema(
            id=field.id,
            key=field.key,
            name=field.name,
            label=field.label,
            field_type=field.field_type.value,
            is_required=field.is_required,
            is_searchable=field.is_searchable,
            position=field.position,
            placeholder=field.placeholder,
            help_text=field.help_text,
            unit=meta.get("unit"),
            prefix=meta.get("prefix"),
            suffix=meta.get("suffix"),
            rules=field_rule_tokens(field),
            options=[OptionSchema.model_validate(o) for o in field.options],
        ))

    return CategorySchemaResponse(
        id=category.id,
        external_id=category.external_id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        parent_id=category.parent_id,
        fields=fields,
    )
