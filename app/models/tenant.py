"""Tenant model — one row per storefront using the widget."""

import uuid
from datetime import datetime

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from app.core.plans import PlanName
from app.models.base import TimestampMixin, new_uuid


class Tenant(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    shop_domain: str = Field(max_length=255, unique=True, nullable=False, index=True)

    # Storefront admin token — Fernet-encrypted, never returned by the API.
    encrypted_access_token: str = Field(default="", nullable=False)

    # Only ever changed through an atomic ``view_count + 1`` UPDATE.
    view_count: int = Field(default=0, nullable=False)

    # Billing
    is_paid: bool = Field(default=False, nullable=False)
    plan: str = Field(
        default=PlanName.NONE,
        sa_column=Column(String(20), nullable=False, server_default=PlanName.NONE.value),
    )
    subscription_id: str | None = Field(
        default=None, max_length=255, unique=True, index=True, nullable=True,
    )
    # Timestamp of the newest activation applied; older events are ignored.
    subscription_updated_at: datetime | None = Field(default=None, nullable=True)


# ── Pydantic schemas ─────────────────────────────────────────

class TenantRead(SQLModel):
    """Public view of a tenant — never includes the access token."""
    id: uuid.UUID
    shop_domain: str
    view_count: int
    is_paid: bool
    plan: str
    subscription_id: str | None
    subscription_updated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
