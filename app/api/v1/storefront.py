"""Public storefront endpoints called by the urgency timer widget."""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.deps import AppSettings, Dedup, Session, Viewers
from app.core.errors import InvalidRequest, TransientStoreError
from app.services.metering import ShopStatus, get_status, register_view

router = APIRouter(prefix="/storefront", tags=["storefront"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterViewRequest(_CamelModel):
    # Optional so that missing fields produce our 400, not a 422.
    shop: str | None = None
    product_id: str | int | None = None
    session_id: str | None = None


class RegisterViewResponse(_CamelModel):
    registered: bool
    duplicate: bool


class ActiveViewersResponse(_CamelModel):
    product_id: str
    active_viewers: int


@router.post("/views", response_model=RegisterViewResponse)
async def register_product_view(
    body: RegisterViewRequest,
    session: Session,
    dedup: Dedup,
    viewers: Viewers,
    settings: AppSettings,
) -> RegisterViewResponse:
    """Count a product page view once per visitor session."""
    try:
        result = await register_view(
            session,
            dedup,
            body.shop,
            body.product_id,
            body.session_id,
            timeout=settings.store_timeout_seconds,
            viewers=viewers,
        )
    except InvalidRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TransientStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="View store temporarily unavailable",
        ) from exc


    return RegisterViewResponse(registered=result.registered, duplicate=result.duplicate)


@router.get("/status", response_model=ShopStatus)
async def shop_status(
    session: Session,
    settings: AppSettings,
    shop: str | None = Query(default=None),
) -> ShopStatus:
    """Lock state, usage and display settings for a shop."""
    try:
        return await get_status(session, shop, settings=settings)
    except InvalidRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TransientStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="View store temporarily unavailable",
        ) from exc


@router.get("/viewers", response_model=ActiveViewersResponse)
async def active_viewers(
    viewers: Viewers,
    shop: str | None = Query(default=None),
    product_id: str | None = Query(default=None, alias="productId"),
) -> ActiveViewersResponse:
    """Approximate number of visitors who opened the product in the last few minutes."""
    if not shop or not product_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="shop and productId are required",
        )
    count = await viewers.count(shop, product_id) if viewers is not None else 0
    return ActiveViewersResponse(product_id=product_id, active_viewers=count)
