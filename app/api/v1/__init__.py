"""V1 API router aggregation."""

from fastapi import APIRouter

from app.api.v1.dashboard import router as dashboard_router
from app.api.v1.shops import router as shops_router
from app.api.v1.storefront import router as storefront_router
from app.api.v1.system import router as system_router
from app.api.v1.webhooks import router as webhooks_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(storefront_router)
v1_router.include_router(shops_router)
v1_router.include_router(dashboard_router)
v1_router.include_router(webhooks_router)
v1_router.include_router(system_router)
