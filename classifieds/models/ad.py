"""Ad listings and their typed dynamic field values."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON, Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text,
    UniqueConstraint, inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import set_committed_value

from ..fields.values import (
    VALUE_COLUMNS,
    FieldDefinitionMissingError,
    FieldValue,
    decode,
    encode,
    present,
    to_columns,
)
from .base import Base, IntIdMixin, TimestampMixin

AD_STATUSES = ("draft", "active", "sold", "expired", "rejected")


class Ad(IntIdMixin, TimestampMixin, Base):
    __tablename__ = "ad"

    category_id: Mapped[int] = mapped_column(
        ForeignKey("category.id", ondelete="RESTRICT"), index=True
    )
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)
    price: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), default=None)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    views_count: Mapped[int] = mapped_column(Integer, default=0)

    # Relationships
    category: Mapped["Category"] = relationship()  # noqa: F821
    field_values: Mapped[list["AdFieldValue"]] = relationship(
        back_populates="ad", cascade="all, delete-orphan",
        order_by="AdFieldValue.id",
    )

    def __repr__(self) -> str:
        return f"<Ad {self.id} {self.title!r}>"


class AdFieldValue(IntIdMixin, TimestampMixin, Base):
    """One typed value for an (ad, category field) pair.

    Exactly one of the typed columns is populated, chosen by the owning
    field's type. Use ``set_value`` / ``get_value`` rather than the columns.
    """

    __tablename__ = "ad_field_value"
    __table_args__ = (
        UniqueConstraint("ad_id", "category_field_id", name="uq_afv_ad_field"),
    )

    ad_id: Mapped[int] = mapped_column(ForeignKey("ad.id", ondelete="CASCADE"), index=True)
    category_field_id: Mapped[int] = mapped_column(
        ForeignKey("category_field.id", ondelete="CASCADE"), index=True
    )

    value_text: Mapped[str | None] = mapped_column(Text, default=None)
    value_integer: Mapped[int | None] = mapped_column(Integer, default=None)
    value_decimal: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), default=None)
    value_date: Mapped[date | None] = mapped_column(Date, default=None)
    value_boolean: Mapped[bool | None] = mapped_column(Boolean, default=None)
    value_json: Mapped[list | None] = mapped_column(JSON, default=None)
    category_field_option_id: Mapped[int | None] = mapped_column(
        ForeignKey("category_field_option.id", ondelete="SET NULL"), default=None
    )

    # Relationships
    ad: Mapped["Ad"] = relationship(back_populates="field_values")
    category_field: Mapped["CategoryField"] = relationship()  # noqa: F821
    selected_option: Mapped["CategoryFieldOption | None"] = relationship()  # noqa: F821

    def _loaded(self, name: str) -> Any:
        """Relationship value if already loaded, else None (never lazy-loads)."""
        if name in inspect(self).unloaded:
            return None
        return getattr(self, name)

    def _field_definition(self):
        field = self._loaded("category_field")
        if field is None:
            raise FieldDefinitionMissingError(
                f"AdFieldValue(ad_id={self.ad_id}, category_field_id={self.category_field_id}) "
                "has no loaded category_field"
            )
        return field

    @property
    def typed_value(self) -> FieldValue | None:
        field = self._field_definition()
        return decode(field.field_type, {column: getattr(self, column) for column in VALUE_COLUMNS})

    def set_value(self, raw: Any) -> None:
        """Store ``raw`` in the column for the field's type, clearing the rest."""
        field = self._field_definition()
        value = encode(field.field_type, raw)
        for column, stored in to_columns(value).items():
            setattr(self, column, stored)

        # Keep the option relationship in step with the FK without flushing it.
        option = None
        if self.category_field_option_id is not None and "options" not in inspect(field).unloaded:
            option = next(
                (o for o in field.options if o.id == self.category_field_option_id), None
            )
        set_committed_value(self, "selected_option", option)

    def get_value(self) -> Any:
        return present(self.typed_value, self._loaded("selected_option"))

    def __repr__(self) -> str:
        return f"<AdFieldValue ad={self.ad_id} field={self.category_field_id}>"
