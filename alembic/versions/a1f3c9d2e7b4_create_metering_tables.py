"""create tenants, product_views and shop_settings

Revision ID: a1f3c9d2e7b4
Revises: 
Create Date: 2026-10-19 09:12:41.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = 'a1f3c9d2e7b4'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("shop_domain", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("encrypted_access_token", sqlmodel.AutoString(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("plan", sa.String(20), nullable=False, server_default="none"),
        sa.Column("subscription_id", sqlmodel.AutoString(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenants_shop_domain", "tenants", ["shop_domain"], unique=True)
    op.create_index("ix_tenants_subscription_id", "tenants", ["subscription_id"], unique=True)

    op.create_table(
        "product_views",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("shop_domain", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("product_id", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("session_id", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "shop_domain", "product_id", "session_id", name="uq_product_views_key"
        ),
    )
    op.create_index("ix_product_views_shop_domain", "product_views", ["shop_domain"])

    op.create_table(
        "shop_settings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("shop_domain", sqlmodel.AutoString(length=255), nullable=False),
        sa.Column("timer_color", sqlmodel.AutoString(length=20), nullable=False),
        sa.Column("timer_position", sqlmodel.AutoString(length=20), nullable=False),
        sa.Column("timer_template", sa.Integer(), nullable=False),
        sa.Column("font_size", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_shop_settings_shop_domain", "shop_settings", ["shop_domain"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_shop_settings_shop_domain", table_name="shop_settings")
    op.drop_table("shop_settings")
    op.drop_index("ix_product_views_shop_domain", table_name="product_views")
    op.drop_table("product_views")
    op.drop_index("ix_tenants_subscription_id", table_name="tenants")
    op.drop_index("ix_tenants_shop_domain", table_name="tenants")
    op.drop_table("tenants")
