"""Shop installation endpoint, called by the OAuth collaborator after authorization."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import AppSettings, InternalAuth, Session
from app.core.errors import TransientStoreError, store_guard
from app.models.tenant import TenantRead
from app.services.tenant_store import upsert_tenant

router = APIRouter(prefix="/shops", tags=["shops"], dependencies=[InternalAuth])


class ShopInstallRequest(BaseModel):
    shop: str = Field(min_length=1, max_length=255)
    access_token: str = Field(min_length=1, alias="accessToken")


@router.post(
    "",
    response_model=TenantRead,
    summary="Register or re-authorize a shop",
)
async def install_shop(
    body: ShopInstallRequest,
    session: Session,
    settings: AppSettings,
) -> TenantRead:
    """Create the tenant on first install; later calls only rotate the access token.

    View counters and billing state survive re-installs.
    """
    try:
        async with store_guard("install_shop", settings.store_timeout_seconds):
            tenant = await upsert_tenant(session, body.shop.strip(), body.access_token)
            await session.commit()
    except TransientStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store temporarily unavailable",
        ) from exc
    return TenantRead.model_validate(tenant)
