"""Admin dashboard endpoints — usage counters and timer display settings."""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.api.deps import AppSettings, InternalAuth, Session
from app.core.errors import InvalidRequest, TransientStoreError, store_guard
from app.models.shop_settings import ShopSettingsRead, TimerPosition
from app.services import tenant_store
from app.services.metering import DashboardStats, get_dashboard_stats

router = APIRouter(prefix="/dashboard", tags=["dashboard"], dependencies=[InternalAuth])


class SettingsUpdateRequest(BaseModel):
    shop: str = Field(min_length=1, max_length=255)
    timer_color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    timer_position: TimerPosition | None = None
    timer_template: int | None = Field(default=None, ge=1, le=4)
    font_size: int | None = Field(default=None, ge=10, le=48)


def _require_shop(shop: str | None) -> str:
    if not shop or not shop.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Shop parameter required",
        )
    return shop.strip()


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    session: Session,
    settings: AppSettings,
    shop: str | None = Query(default=None),
) -> DashboardStats:
    try:
        return await get_dashboard_stats(session, shop, settings=settings)
    except InvalidRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TransientStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/settings", response_model=ShopSettingsRead)
async def read_settings(
    session: Session,
    settings: AppSettings,
    shop: str | None = Query(default=None),
) -> ShopSettingsRead:
    shop = _require_shop(shop)
    try:
        async with store_guard("read_settings", settings.store_timeout_seconds):
            row = await tenant_store.get_or_create_settings(session, shop)
            await session.commit()
    except TransientStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ShopSettingsRead.model_validate(row)


@router.post("/settings", response_model=ShopSettingsRead)
async def write_settings(
    body: SettingsUpdateRequest,
    session: Session,
    settings: AppSettings,
) -> ShopSettingsRead:
    """Partial update: omitted fields keep their current values."""
    shop = _require_shop(body.shop)
    changes = body.model_dump(mode="json", exclude={"shop"}, exclude_none=True)
    try:
        async with store_guard("write_settings", settings.store_timeout_seconds):
            row = await tenant_store.update_settings(session, shop, changes)
            await session.commit()
    except TransientStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ShopSettingsRead.model_validate(row)
