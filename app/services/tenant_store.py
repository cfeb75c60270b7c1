"""Tenant counter store — durable counters, billing flags and display settings.

Every mutation is a single statement so concurrent callers never lose an
update: counters move with ``SET view_count = view_count + 1`` and first
views are recorded with ``INSERT ... ON CONFLICT DO NOTHING`` against the
``product_views`` unique key. No function here commits; the caller owns the
transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.security import encrypt_value
from app.models.base import new_uuid, utcnow
from app.models.product_view import ProductView
from app.models.shop_settings import DEFAULT_SETTINGS, ShopSettings
from app.models.tenant import Tenant

_VIEW_KEY = ["shop_domain", "product_id", "session_id"]


def _insert_for(session: AsyncSession, table: Any) -> Any:
    """Dialect-specific INSERT construct supporting ON CONFLICT."""
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as _pg_insert
        return _pg_insert(table)
    from sqlalchemy.dialects.sqlite import insert as _sqlite_insert
    return _sqlite_insert(table)


# ── Tenants ──────────────────────────────────────────────────

async def upsert_tenant(session: AsyncSession, shop: str, access_token: str) -> Tenant:
    """Create the tenant or refresh its access token. Counters and plan are untouched."""
    now = utcnow()
    stmt = _insert_for(session, Tenant).values(
        id=new_uuid(),
        shop_domain=shop,
        encrypted_access_token=encrypt_value(access_token),
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["shop_domain"],
        set_={
            "encrypted_access_token": stmt.excluded.encrypted_access_token,
            "updated_at": stmt.excluded.updated_at,
        },
    ).returning(Tenant)
    result = await session.scalars(stmt, execution_options={"populate_existing": True})
    return result.one()


async def increment_view_count(session: AsyncSession, shop: str) -> Tenant | None:
    """Atomically add one view. Returns None when the shop has no tenant row."""
    stmt = (
        update(Tenant)
        .where(Tenant.shop_domain == shop)
        .values(view_count=Tenant.view_count + 1, updated_at=utcnow())
        .returning(Tenant)
    )
    result = await session.scalars(
        stmt,
        execution_options={"synchronize_session": False, "populate_existing": True},
    )
    return result.one_or_none()


async def update_subscription(
    session: AsyncSession,
    shop: str,
    subscription_id: str | None,
    plan: str,
    is_paid: bool,
    *,
    newer_than: datetime | None = None,
    not_older_than: datetime | None = None,
    only_if_current: bool = False,
) -> Tenant | None:
    """Overwrite the billing fields in one conditional UPDATE.

    ``newer_than`` applies the change only when it is strictly newer than the
    stored ``subscription_updated_at`` and then records it there.
    ``not_older_than`` only guards, it never moves the stored timestamp.
    ``only_if_current`` requires the row to already hold *subscription_id*.
    Returns None when no row matched: unknown shop, stale event or a
    subscription that has been replaced.
    """
    values: dict[str, Any] = {
        "subscription_id": subscription_id,
        "plan": plan,
        "is_paid": is_paid,
        "updated_at": utcnow(),
    }
    stmt = update(Tenant).where(Tenant.shop_domain == shop)
    if newer_than is not None:
        stmt = stmt.where(
            or_(
                Tenant.subscription_updated_at.is_(None),
                Tenant.subscription_updated_at < newer_than,
            )
        )
        values["subscription_updated_at"] = newer_than
    if not_older_than is not None:
        stmt = stmt.where(
            or_(
                Tenant.subscription_updated_at.is_(None),
                Tenant.subscription_updated_at <= not_older_than,
            )
        )
    if only_if_current:
        stmt = stmt.where(Tenant.subscription_id == subscription_id)
    stmt = stmt.values(**values).returning(Tenant)
    result = await session.scalars(
        stmt,
        execution_options={"synchronize_session": False, "populate_existing": True},
    )
    return result.one_or_none()


async def get_tenant_stats(session: AsyncSession, shop: str) -> Tenant | None:
    result = await session.execute(
        select(Tenant)
        .where(Tenant.shop_domain == shop)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_tenant_by_subscription(
    session: AsyncSession, subscription_id: str
) -> Tenant | None:
    result = await session.execute(
        select(Tenant)
        .where(Tenant.subscription_id == subscription_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ── Product views ────────────────────────────────────────────

async def insert_view_record_once(
    session: AsyncSession, shop: str, product_id: str, session_id: str
) -> bool:
    """Record a view; True only if this call created the row."""
    stmt = (
        _insert_for(session, ProductView)
        .values(
            id=new_uuid(),
            shop_domain=shop,
            product_id=product_id,
            session_id=session_id,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=_VIEW_KEY)
        .returning(ProductView.id)
    )
    result = await session.execute(stmt)
    return result.first() is not None


async def count_unique_sessions(session: AsyncSession, shop: str) -> int:
    result = await session.execute(
        select(func.count(func.distinct(ProductView.session_id))).where(
            ProductView.shop_domain == shop
        )
    )
    return result.scalar_one() or 0


# ── Display settings ─────────────────────────────────────────

async def get_or_create_settings(session: AsyncSession, shop: str) -> ShopSettings:
    """Return the shop's settings row, creating it with defaults if missing.

    The create path is one upsert statement, so two first requests racing
    for the same shop both get the single row back.
    """
    result = await session.execute(
        select(ShopSettings).where(ShopSettings.shop_domain == shop)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing

    now = utcnow()
    stmt = _insert_for(session, ShopSettings).values(
        id=new_uuid(),
        shop_domain=shop,
        created_at=now,
        updated_at=now,
        **DEFAULT_SETTINGS,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["shop_domain"],
        set_={"shop_domain": stmt.excluded.shop_domain},
    ).returning(ShopSettings)
    created = await session.scalars(stmt, execution_options={"populate_existing": True})
    return created.one()


async def update_settings(
    session: AsyncSession, shop: str, changes: dict[str, Any]
) -> ShopSettings:
    """Apply the non-None entries of *changes*; other fields keep their values."""
    settings_row = await get_or_create_settings(session, shop)
    for field, value in changes.items():
        if value is not None:
            setattr(settings_row, field, value)
    settings_row.updated_at = utcnow()
    session.add(settings_row)
    await session.flush()
    return settings_row
