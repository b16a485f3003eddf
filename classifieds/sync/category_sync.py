"""Upstream taxonomy -> local categories, fields and options."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.ad import AdFieldValue
from ..models.category import Category, CategoryField, CategoryFieldOption
from ..schemas.sync import SyncStats
from .field_mapper import (
    category_attributes,
    category_external_id,
    category_parent_ref,
    field_attributes,
    field_external_id,
    option_attributes,
    option_external_id,
)
from .taxonomy_client import TaxonomyClient

logger = logging.getLogger(__name__)

COMMON_FIELDS_KEY = "common_category_fields"


class _CategoryIndex:
    """Local categories by external id and by the upstream internal-id hint."""

    def __init__(self, categories: list[Category]):
        self.by_external: dict[str, Category] = {}
        self.by_hint: dict[str, Category] = {}
        for category in categories:
            self.add(category)

    def add(self, category: Category) -> None:
        if category.external_id:
            self.by_external[category.external_id] = category
        hint = category.internal_id_hint
        if hint:
            self.by_hint[hint] = category

    def parent_for(self, ref: str | None) -> Category | None:
        if not ref:
            return None
        return self.by_external.get(ref) or self.by_hint.get(ref)

    def resolve_group_key(self, key: str) -> Category | None:
        return self.by_hint.get(key) or self.by_external.get(key)


def _warn(stats: SyncStats, message: str, *args: Any, skipped: bool = True) -> None:
    logger.warning(message, *args)
    stats.warnings.append(message % args if args else message)
    if skipped:
        stats.skipped += 1


async def sync_all(
    db: AsyncSession, client: TaxonomyClient, *, force_refresh: bool = False
) -> SyncStats:
    """Sync categories, their fields and options in one transaction.

    Commits once on success. Any exception rolls the whole sync back and is
    re-raised.
    """
    stats = SyncStats()
    try:
        categories_data = await client.fetch_categories(force_refresh)
        index = await _sync_categories(db, categories_data, stats)

        synced_ids = list(dict.fromkeys(
            ext_id for ext_id in (category_external_id(c) for c in categories_data) if ext_id
        ))
        if synced_ids:
            groups = await client.fetch_category_fields(synced_ids, force_refresh)
            await _sync_category_fields(db, groups, index, stats)

        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Taxonomy sync failed, rolled back")
        raise

    logger.info(
        "Taxonomy sync complete: %d categories, %d fields, %d options (%d pruned), %d skipped",
        stats.categories, stats.fields, stats.options, stats.options_pruned, stats.skipped,
    )
    return stats


async def _sync_categories(
    db: AsyncSession, categories_data: list[dict], stats: SyncStats
) -> _CategoryIndex:
    existing = list((await db.execute(select(Category))).scalars().all())
    index = _CategoryIndex(existing)
    now = datetime.now(timezone.utc)

    for c_data in categories_data:
        if not isinstance(c_data, dict):
            _warn(stats, "Skipping category entry that is not an object")
            continue
        ext_id = category_external_id(c_data)
        if ext_id is None:
            _warn(stats, "Skipping category without identifier: %s", c_data.get("name", "?"))
            continue

        attrs = category_attributes(c_data)
        parent_ref = category_parent_ref(c_data)
        parent = index.parent_for(parent_ref)
        if parent_ref and parent is None:
            _warn(stats, "Parent %s of category %s not found", parent_ref, ext_id, skipped=False)

        category = index.by_external.get(ext_id)
        if category is None:
            category = Category(external_id=ext_id, **attrs)
            db.add(category)
        else:
            for attr, value in attrs.items():
                setattr(category, attr, value)
        category.parent_id = parent.id if parent is not None and parent is not category else None
        category.last_synced_at = now
        await db.flush()

        index.add(category)
        stats.categories += 1
        logger.debug("Synced category %s (%s)", category.name, ext_id)

    return index


async def _sync_category_fields(
    db: AsyncSession, groups: dict[str, Any], index: _CategoryIndex, stats: SyncStats
) -> None:
    for group_key, group in groups.items():
        if group_key == COMMON_FIELDS_KEY:
            logger.debug("Skipping %s group", COMMON_FIELDS_KEY)
            continue
        if not isinstance(group, dict):
            _warn(stats, "Field group %s is not an object", group_key)
            continue
        flat_fields = group.get("flatFields")
        if isinstance(flat_fields, dict):
            entries = list(flat_fields.values())
        elif isinstance(flat_fields, list):
            entries = flat_fields
        else:
            _warn(stats, "No flatFields found for field group %s", group_key)
            continue

        category = index.resolve_group_key(str(group_key))
        if category is None:
            _warn(stats, "Category not found for field group %s", group_key)
            continue

        await _sync_fields_for_category(db, category, entries, stats)


async def _sync_fields_for_category(
    db: AsyncSession, category: Category, entries: list[Any], stats: SyncStats
) -> None:
    stmt = select(CategoryField).where(CategoryField.category_id == category.id)
    fields_by_key = {
        f.external_id: f for f in (await db.execute(stmt)).scalars().all() if f.external_id
    }
    now = datetime.now(timezone.utc)

    for f_data in entries:
        if not isinstance(f_data, dict) or not f_data.get("attribute"):
            continue
        ext_id = field_external_id(f_data)

        attrs = field_attributes(f_data)
        field = fields_by_key.get(ext_id)
        if field is None:
            field = CategoryField(category=category, external_id=ext_id, **attrs)
            db.add(field)
            await db.flush()
            fields_by_key[ext_id] = field
        else:
            for attr, value in attrs.items():
                setattr(field, attr, value)
        field.last_synced_at = now
        stats.fields += 1

        choices = f_data.get("choices")
        if isinstance(choices, list):
            await _sync_field_options(db, field, choices, stats)


async def _sync_field_options(
    db: AsyncSession, field: CategoryField, choices: list[Any], stats: SyncStats
) -> None:
    """Upsert options from ``choices`` and delete the ones no longer listed."""
    stmt = select(CategoryFieldOption).where(CategoryFieldOption.category_field_id == field.id)
    existing = list((await db.execute(stmt)).scalars().all())
    options_by_key = {o.external_id: o for o in existing if o.external_id}
    now = datetime.now(timezone.utc)
    current_keys: set[str] = set()

    for position, choice in enumerate(choices):
        if not isinstance(choice, dict):
            continue
        ext_id = option_external_id(choice)
        if ext_id is None:
            _warn(stats, "Skipping choice without id or value on field %s", field.key)
            continue

        attrs = option_attributes(choice, position)
        option = options_by_key.get(ext_id)
        if option is None:
            option = CategoryFieldOption(field=field, external_id=ext_id, **attrs)
            db.add(option)
            options_by_key[ext_id] = option
        else:
            for attr, value in attrs.items():
                setattr(option, attr, value)
        option.last_synced_at = now
        current_keys.add(ext_id)
        stats.options += 1

    pruned = [o for o in existing if o.external_id not in current_keys]
    if pruned:
        await _drop_pruned_selections(db, field, {o.id for o in pruned})
    for option in pruned:
        await db.delete(option)
        stats.options_pruned += 1

    await db.flush()


async def _drop_pruned_selections(
    db: AsyncSession, field: CategoryField, pruned_ids: set[int]
) -> None:
    """Remove ad values that point at pruned options of ``field``.

    Select and radio rows referencing a pruned option are deleted. Checkbox
    rows lose the pruned ids and are deleted once nothing is left selected.
    """
    stmt = select(AdFieldValue).where(AdFieldValue.category_field_id == field.id)
    deleted = 0
    for row in (await db.execute(stmt)).scalars().all():
        if row.category_field_option_id in pruned_ids:
            await db.delete(row)
            deleted += 1
        elif row.value_json:
            kept = [i for i in row.value_json if i not in pruned_ids]
            if not kept:
                await db.delete(row)
                deleted += 1
            elif len(kept) != len(row.value_json):
                row.value_json = kept
    if deleted:
        logger.info("Deleted %d ad values of field %s that used pruned options", deleted, field.key)
