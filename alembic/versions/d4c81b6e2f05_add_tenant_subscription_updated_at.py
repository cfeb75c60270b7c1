"""add tenants.subscription_updated_at

Revision ID: d4c81b6e2f05
Revises: a1f3c9d2e7b4
Create Date: 2026-10-19 14:03:27.551920

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = 'd4c81b6e2f05'
down_revision: str | Sequence[str] | None = 'a1f3c9d2e7b4'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("tenants", sa.Column("subscription_updated_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    op.drop_column("tenants", "subscription_updated_at")
