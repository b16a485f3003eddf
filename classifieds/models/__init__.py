"""Classifieds models - re-exports all models and Base.metadata."""

from .base import Base, IntIdMixin, TimestampMixin, ExternalSyncMixin
from .category import Category, CategoryField, CategoryFieldOption
from .ad import Ad, AdFieldValue, AD_STATUSES

__all__ = [
    "Base",
    "IntIdMixin",
    "TimestampMixin",
    "ExternalSyncMixin",
    "Category",
    "CategoryField",
    "CategoryFieldOption",
    "Ad",
    "AdFieldValue",
    "AD_STATUSES",
]
