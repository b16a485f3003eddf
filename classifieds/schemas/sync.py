"""Taxonomy sync schemas."""

from __future__ import annotations

from pydantic import BaseModel


class SyncStats(BaseModel):
    categories: int = 0
    fields: int = 0
    options: int = 0
    options_pruned: int = 0
    skipped: int = 0
    warnings: list[str] = []
