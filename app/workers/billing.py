"""Subscription reconciliation worker task."""

from __future__ import annotations

import logging
from datetime import datetime

from arq import Retry

from app.core.errors import SubscriptionConflict, TransientStoreError, UnknownTenant, store_guard
from app.services.billing import apply_subscription_update

logger = logging.getLogger(__name__)

# Seconds before ARQ re-runs a job whose store calls failed.
RETRY_DELAY = 30


async def reconcile_subscription(
    ctx: dict,
    shop: str | None,
    subscription_id: str | None,
    status: str,
    price_amount: float | None,
    event_at: datetime | None = None,
) -> dict:
    """ARQ task: apply one subscription event to its tenant.

    Args:
        ctx: ARQ worker context; ``ctx["session_factory"]`` is set on startup.
        shop: Shop domain from the webhook headers, if any.
        subscription_id: GraphQL id of the subscription.
        status: Subscription status as sent by the platform.
        price_amount: Recurring price, used to derive the plan.
        event_at: When the platform last updated the subscription; orders
            redelivered events.

    Returns:
        dict describing the resulting billing state.
    """
    timeout = ctx.get("store_timeout", 10.0)
    async with ctx["session_factory"]() as session:
        try:
            async with store_guard("reconcile_subscription", timeout):
                tenant = await apply_subscription_update(
                    session, shop, subscription_id, status, price_amount, event_at
                )
        except UnknownTenant:
            logger.warning(
                "Subscription %s (%s) matches no tenant; dropping", subscription_id, status
            )
            return {"applied": False, "reason": "unknown_tenant"}
        except SubscriptionConflict:
            return {"applied": False, "reason": "subscription_conflict"}
        except TransientStoreError as exc:
            # Updates are absolute values, so a re-run is harmless.
            logger.warning("Reconciliation for %s deferred: %s", subscription_id, exc)
            raise Retry(defer=RETRY_DELAY) from exc

    return {
        "applied": True,
        "shop": tenant.shop_domain,
        "plan": tenant.plan,
        "is_paid": tenant.is_paid,
    }
