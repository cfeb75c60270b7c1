"""View registration and quota status for storefront widgets."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import ActiveViewers, DedupCache
from app.core.config import Settings
from app.core.errors import DedupCacheUnavailable, InvalidRequest, TransientStoreError, store_guard
from app.core.plans import PlanName
from app.core.quota import evaluate
from app.services import tenant_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewRegistration:
    registered: bool
    duplicate: bool


class ShopStatus(BaseModel):
    """What the widget needs to decide between the timer and the locked banner."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    locked: bool
    views_used: int
    total_views: int
    views_remaining: int
    warning: bool
    is_paid: bool
    plan: str = PlanName.NONE
    settings: dict = Field(default_factory=dict)


class DashboardStats(BaseModel):
    shop_domain: str
    total_views: int = 0
    unique_sessions: int = 0
    is_paid: bool = False
    plan: str = PlanName.NONE
    subscription_id: str | None = None
    locked: bool = False
    views_remaining: int = 0
    warning: bool = False


def _require(name: str, value: object) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise InvalidRequest(f"{name} is required")
    return text


async def register_view(
    session: AsyncSession,
    dedup: DedupCache | None,
    shop: str | None,
    product_id: str | int | None,
    session_id: str | None,
    *,
    timeout: float,
    viewers: ActiveViewers | None = None,
) -> ViewRegistration:
    """Count a product view at most once per (shop, product, session).

    The cache short-circuits repeat views; the durable unique key decides
    everything else. Store failures surface as TransientStoreError and are
    never retried here: replaying the whole call is safe, replaying a bare
    increment is not.

    A counted view also bumps the product's active-viewer window when
    *viewers* is given.
    """
    shop = _require("shop", shop)
    product = _require("productId", product_id)
    visitor = _require("sessionId", session_id)

    if dedup is not None:
        try:
            if await dedup.check_and_mark(shop, visitor, product):
                return ViewRegistration(registered=False, duplicate=True)
        except DedupCacheUnavailable as exc:
            logger.warning("Dedup cache unavailable, using store only: %s", exc)

    try:
        async with store_guard("register_view", timeout):
            created = await tenant_store.insert_view_record_once(session, shop, product, visitor)
            if not created:
                await session.rollback()
                return ViewRegistration(registered=False, duplicate=True)

            tenant = await tenant_store.increment_view_count(session, shop)
            await session.commit()
    except TransientStoreError:
        logger.exception("View registration failed for %s", shop)
        await session.rollback()
        if dedup is not None:
            await dedup.unmark(shop, visitor, product)
        raise

    if tenant is None:
        logger.warning("View recorded for unknown shop %s; no counter to increment", shop)
    if viewers is not None:
        await viewers.touch(shop, product)
    return ViewRegistration(registered=True, duplicate=False)


async def get_status(
    session: AsyncSession, shop: str | None, *, settings: Settings
) -> ShopStatus:
    """Current lock decision plus display settings. Unknown shops are never locked."""
    shop = _require("shop", shop)

    async with store_guard("get_status", settings.store_timeout_seconds):
        tenant = await tenant_store.get_tenant_stats(session, shop)
        if tenant is None:
            return ShopStatus(
                locked=False,
                views_used=0,
                total_views=settings.free_view_limit,
                views_remaining=settings.free_view_limit,
                warning=False,
                is_paid=False,
            )
        shop_settings = await tenant_store.get_or_create_settings(session, shop)
        await session.commit()

    decision = evaluate(
        tenant.view_count,
        tenant.is_paid,
        limit=settings.free_view_limit,
        warning_window=settings.warning_window,
    )
    return ShopStatus(
        locked=decision.locked,
        views_used=decision.views_used,
        total_views=settings.free_view_limit,
        views_remaining=decision.views_remaining,
        warning=decision.warning,
        is_paid=tenant.is_paid,
        plan=tenant.plan,
        settings=shop_settings.model_dump(
            include={"timer_color", "timer_position", "timer_template", "font_size"}
        ),
    )


async def get_dashboard_stats(
    session: AsyncSession, shop: str | None, *, settings: Settings
) -> DashboardStats:
    shop = _require("shop", shop)

    async with store_guard("get_dashboard_stats", settings.store_timeout_seconds):
        tenant = await tenant_store.get_tenant_stats(session, shop)
        if tenant is None:
            return DashboardStats(shop_domain=shop, views_remaining=settings.free_view_limit)
        unique_sessions = await tenant_store.count_unique_sessions(session, shop)

    decision = evaluate(
        tenant.view_count,
        tenant.is_paid,
        limit=settings.free_view_limit,
        warning_window=settings.warning_window,
    )
    return DashboardStats(
        shop_domain=shop,
        total_views=tenant.view_count,
        unique_sessions=unique_sessions,
        is_paid=tenant.is_paid,
        plan=tenant.plan,
        subscription_id=tenant.subscription_id,
        locked=decision.locked,
        views_remaining=decision.views_remaining,
        warning=decision.warning,
    )
