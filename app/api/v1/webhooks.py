"""Shopify webhooks — HMAC-verified, billing updates handed to the worker."""

import json
import logging
from datetime import datetime

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from app.api.deps import AppSettings, JobQueue, Session
from app.core.errors import SubscriptionConflict, TransientStoreError, UnknownTenant, store_guard
from app.core.plans import price_for_plan_name
from app.core.security import verify_webhook
from app.services.billing import apply_subscription_update, normalize_subscription_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class AppSubscriptionPayload(BaseModel):
    admin_graphql_api_id: str
    status: str
    name: str | None = None
    price: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WebhookAck(BaseModel):
    accepted: bool
    queued: bool = False
    detail: str | None = None


async def _verified_json(request: Request, signature: str | None, secret: str) -> dict:
    body = await request.body()
    if not verify_webhook(body, signature, secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )
    try:
        data = json.loads(body or b"{}")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON") from exc
    if not isinstance(data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed payload")
    return data


@router.post("/app-subscriptions/update", response_model=WebhookAck)
async def app_subscription_updated(
    request: Request,
    session: Session,
    queue: JobQueue,
    settings: AppSettings,
    x_shopify_hmac_sha256: str | None = Header(default=None),
    x_shopify_shop_domain: str | None = Header(default=None),
    x_shopify_webhook_id: str | None = Header(default=None),
) -> WebhookAck:
    """Reconcile a subscription status change.

    Queued to the worker when a job pool is available; the webhook id is the
    job id so redeliveries collapse into one job. Without a pool the update
    is applied inline.
    """
    data = await _verified_json(request, x_shopify_hmac_sha256, settings.shopify_api_secret)
    try:
        sub = AppSubscriptionPayload.model_validate(data.get("app_subscription", data))
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing subscription id or status",
        ) from exc

    subscription_id = normalize_subscription_id(sub.admin_graphql_api_id)
    price = sub.price if sub.price is not None else price_for_plan_name(sub.name)
    event_at = sub.updated_at or sub.created_at

    if queue is not None:
        job_id = f"subscription:{x_shopify_webhook_id}" if x_shopify_webhook_id else None
        try:
            await queue.enqueue_job(
                "reconcile_subscription",
                x_shopify_shop_domain,
                subscription_id,
                sub.status,
                price,
                event_at,
                _job_id=job_id,
            )
        except RedisError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Job queue temporarily unavailable",
            ) from exc
        logger.info("Queued subscription %s (%s)", subscription_id, sub.status)
        return WebhookAck(accepted=True, queued=True)

    try:
        async with store_guard("app_subscription_updated", settings.store_timeout_seconds):
            await apply_subscription_update(
                session, x_shopify_shop_domain, subscription_id, sub.status, price, event_at
            )
    except UnknownTenant:
        # Acknowledge so the platform stops redelivering an event we can never apply.
        logger.warning("Subscription %s matches no tenant", subscription_id)
        return WebhookAck(accepted=False, detail="unknown tenant")
    except SubscriptionConflict:
        return WebhookAck(accepted=False, detail="subscription held by another tenant")
    except TransientStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store temporarily unavailable",
        ) from exc
    return WebhookAck(accepted=True)


@router.post("/app/uninstalled", response_model=WebhookAck)
async def app_uninstalled(
    request: Request,
    settings: AppSettings,
    x_shopify_hmac_sha256: str | None = Header(default=None),
    x_shopify_shop_domain: str | None = Header(default=None),
) -> WebhookAck:
    """Shop data is kept for analytics; the uninstall is only logged."""
    data = await _verified_json(request, x_shopify_hmac_sha256, settings.shopify_api_secret)
    shop = data.get("myshopify_domain") or x_shopify_shop_domain
    logger.info("App uninstalled for shop: %s", shop)
    return WebhookAck(accepted=True)
