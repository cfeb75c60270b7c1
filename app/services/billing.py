"""Billing reconciliation — apply subscription lifecycle events to tenants.

Webhooks arrive at least once and possibly out of order. Every update here
writes absolute values (never toggles or increments), so replaying an event
leaves the tenant in the same state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import SubscriptionConflict, UnknownTenant
from app.core.plans import TERMINAL_STATUSES, PlanName, SubscriptionStatus, plan_from_price
from app.models.tenant import Tenant
from app.services import tenant_store

logger = logging.getLogger(__name__)


def normalize_subscription_id(raw: str | int | None) -> str | None:
    """Accept either a GraphQL gid or the bare numeric id; store the gid form."""
    if raw is None or str(raw).strip() == "":
        return None
    text = str(raw).strip()
    if text.startswith("gid://"):
        return text
    return f"gid://shopify/AppSubscription/{text}"


async def resolve_tenant(
    session: AsyncSession, shop: str | None, subscription_id: str | None
) -> Tenant:
    """Find the tenant by shop domain, falling back to the subscription index."""
    if shop:
        tenant = await tenant_store.get_tenant_stats(session, shop)
        if tenant is not None:
            return tenant
    if subscription_id:
        tenant = await tenant_store.get_tenant_by_subscription(session, subscription_id)
        if tenant is not None:
            return tenant
    raise UnknownTenant(f"no tenant for shop={shop!r} subscription={subscription_id!r}")


def _as_naive_utc(moment: datetime | None) -> datetime | None:
    """Stored timestamps are naive UTC; normalise offset-aware payload values."""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


async def apply_subscription_update(
    session: AsyncSession,
    shop: str | None,
    subscription_id: str | int | None,
    status: str,
    price_amount: float | None,
    event_at: datetime | None = None,
) -> Tenant:
    """Apply one subscription event and commit.

    ACTIVE marks the tenant paid on the plan implied by the price, unless an
    activation at least as new as *event_at* has already been applied.
    CANCELLED or EXPIRED downgrade the tenant, but only while the event's
    subscription is still the tenant's current one. Each check is part of
    the UPDATE itself, so redelivered or reordered events cannot bring back
    a replaced subscription. Every other status leaves the tenant untouched.

    Events without a timestamp cannot be ordered and are applied as they come.

    Raises SubscriptionConflict when the subscription id belongs to another
    tenant.
    """
    sub_id = normalize_subscription_id(subscription_id)
    event_at = _as_naive_utc(event_at)
    tenant = await resolve_tenant(session, shop, sub_id)
    normalized = str(status or "").strip().upper()

    if normalized == SubscriptionStatus.ACTIVE:
        plan = plan_from_price(price_amount)
        try:
            updated = await tenant_store.update_subscription(
                session, tenant.shop_domain, sub_id, plan, True, newer_than=event_at
            )
        except IntegrityError as exc:
            logger.warning(
                "Subscription %s already belongs to another tenant; %s unchanged",
                sub_id,
                tenant.shop_domain,
            )
            await session.rollback()
            raise SubscriptionConflict(
                f"subscription {sub_id} is held by another tenant"
            ) from exc
        await session.commit()
        if updated is None:
            logger.info(
                "Ignoring stale activation of %s for %s (event %s)",
                sub_id, tenant.shop_domain, event_at,
            )
            return tenant
        logger.info(
            "Subscription %s active for %s on plan %s", sub_id, tenant.shop_domain, plan
        )
        return updated

    if normalized in TERMINAL_STATUSES and sub_id:
        updated = await tenant_store.update_subscription(
            session,
            tenant.shop_domain,
            sub_id,
            PlanName.NONE,
            False,
            not_older_than=event_at,
            only_if_current=True,
        )
        await session.commit()
        if updated is None:
            logger.info(
                "Ignoring %s of replaced subscription %s for %s",
                normalized, sub_id, tenant.shop_domain,
            )
            return tenant
        logger.info("Subscription %s %s; %s downgraded", sub_id, normalized, tenant.shop_domain)
        return updated

    logger.info(
        "Ignoring subscription %s status %s for %s", sub_id, normalized or "<empty>", tenant.shop_domain
    )
    return tenant
