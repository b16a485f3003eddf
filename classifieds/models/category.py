"""Category taxonomy: categories, their dynamic fields, and field options."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..fields.types import FieldType, canonical_field_key
from .base import Base, ExternalSyncMixin, IntIdMixin, TimestampMixin


class Category(IntIdMixin, TimestampMixin, ExternalSyncMixin, Base):
    """Upstream taxonomy node; ``parent_id`` forms the category tree."""

    __tablename__ = "category"
    __table_args__ = (
        UniqueConstraint("external_id", name="uq_category_external_id"),
    )

    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("category.id", ondelete="SET NULL"), default=None, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    # icon, level, has_children and the raw upstream payload (raw_data)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    # Relationships
    parent: Mapped["Category | None"] = relationship(
        back_populates="children", remote_side="Category.id"
    )
    children: Mapped[list["Category"]] = relationship(
        back_populates="parent", order_by="Category.position"
    )
    fields: Mapped[list["CategoryField"]] = relationship(
        back_populates="category", cascade="all, delete-orphan",
        order_by="CategoryField.position",
    )

    @property
    def internal_id_hint(self) -> str | None:
        """The upstream source's own id for this category, when it sent one."""
        raw = (self.metadata_json or {}).get("raw_data") or {}
        hint = raw.get("id") if isinstance(raw, dict) else None
        if hint is None or str(hint).strip() == "":
            return None
        return str(hint)

    def __repr__(self) -> str:
        return f"<Category {self.external_id!r} {self.name!r}>"


class CategoryField(IntIdMixin, TimestampMixin, ExternalSyncMixin, Base):
    """One dynamic schema slot of a category."""

    __tablename__ = "category_field"

    category_id: Mapped[int] = mapped_column(
        ForeignKey("category.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(200))
    label: Mapped[str] = mapped_column(String(200))
    field_type: Mapped[FieldType] = mapped_column(
        Enum(
            FieldType,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        default=FieldType.TEXT,
    )
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    is_searchable: Mapped[bool] = mapped_column(Boolean, default=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    validation_rules: Mapped[str | None] = mapped_column(String(500), default=None)  # "min:1|max:10"
    placeholder: Mapped[str | None] = mapped_column(String(200), default=None)
    help_text: Mapped[str | None] = mapped_column(Text, default=None)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    # Relationships
    category: Mapped["Category"] = relationship(back_populates="fields")
    options: Mapped[list["CategoryFieldOption"]] = relationship(
        back_populates="field", cascade="all, delete-orphan",
        order_by="CategoryFieldOption.position",
    )

    @property
    def key(self) -> str:
        return canonical_field_key(self)

    @property
    def has_options(self) -> bool:
        return FieldType(self.field_type).has_options

    @property
    def custom_rules(self) -> list[str]:
        if not self.validation_rules:
            return []
        return [token.strip() for token in self.validation_rules.split("|") if token.strip()]

    def __repr__(self) -> str:
        return f"<CategoryField {self.key!r} {self.field_type}>"


class CategoryFieldOption(IntIdMixin, TimestampMixin, ExternalSyncMixin, Base):
    """Selectable choice of a select, radio or checkbox field."""

    __tablename__ = "category_field_option"
    __table_args__ = (
        UniqueConstraint("category_field_id", "external_id", name="uq_option_field_external_id"),
    )

    category_field_id: Mapped[int] = mapped_column(
        ForeignKey("category_field.id", ondelete="CASCADE"), index=True
    )
    value: Mapped[str] = mapped_column(String(255))
    label: Mapped[str] = mapped_column(String(255))
    position: Mapped[int] = mapped_column(Integer, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    # Relationships
    field: Mapped["CategoryField"] = relationship(back_populates="options")

    def __repr__(self) -> str:
        return f"<CategoryFieldOption {self.external_id!r} {self.label!r}>"
