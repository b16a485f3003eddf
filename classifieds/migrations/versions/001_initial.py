"""Initial classifieds schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Category tree
    op.create_table(
        "category",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("parent_id", sa.Integer, sa.ForeignKey("category.id", ondelete="SET NULL")),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON),
        sa.Column("external_id", sa.String(100)),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("external_id", name="uq_category_external_id"),
    )
    op.create_index("ix_category_slug", "category", ["slug"])
    op.create_index("ix_category_parent_id", "category", ["parent_id"])
    op.create_index("ix_category_external_id", "category", ["external_id"])

    # Category field definitions
    op.create_table(
        "category_field",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("category.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("field_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_searchable", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("validation_rules", sa.String(500)),
        sa.Column("placeholder", sa.String(200)),
        sa.Column("help_text", sa.Text),
        sa.Column("metadata", sa.JSON),
        sa.Column("external_id", sa.String(100)),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_category_field_category_id", "category_field", ["category_id"])
    op.create_index("ix_category_field_external_id", "category_field", ["external_id"])

    # Field options
    op.create_table(
        "category_field_option",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("category_field_id", sa.Integer, sa.ForeignKey("category_field.id", ondelete="CASCADE"), nullable=False),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("metadata", sa.JSON),
        sa.Column("external_id", sa.String(100)),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("category_field_id", "external_id", name="uq_option_field_external_id"),
    )
    op.create_index("ix_category_field_option_category_field_id", "category_field_option", ["category_field_id"])
    op.create_index("ix_category_field_option_external_id", "category_field_option", ["external_id"])

    # Ads
    op.create_table(
        "ad",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("category.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("price", sa.Numeric(12, 2)),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("published_at", sa.DateTime(timezone=True)),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("views_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ad_category_id", "ad", ["category_id"])
    op.create_index("ix_ad_status", "ad", ["status"])

    # Typed dynamic field values
    op.create_table(
        "ad_field_value",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ad_id", sa.Integer, sa.ForeignKey("ad.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category_field_id", sa.Integer, sa.ForeignKey("category_field.id", ondelete="CASCADE"), nullable=False),
        sa.Column("value_text", sa.Text),
        sa.Column("value_integer", sa.Integer),
        sa.Column("value_decimal", sa.Numeric(12, 2)),
        sa.Column("value_date", sa.Date),
        sa.Column("value_boolean", sa.Boolean),
        sa.Column("value_json", sa.JSON),
        sa.Column("category_field_option_id", sa.Integer, sa.ForeignKey("category_field_option.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("ad_id", "category_field_id", name="uq_afv_ad_field"),
    )
    op.create_index("ix_ad_field_value_ad_id", "ad_field_value", ["ad_id"])
    op.create_index("ix_ad_field_value_category_field_id", "ad_field_value", ["category_field_id"])


def downgrade() -> None:
    op.drop_table("ad_field_value")
    op.drop_table("ad")
    op.drop_table("category_field_option")
    op.drop_table("category_field")
    op.drop_table("category")
