"""Import all models so SQLModel.metadata picks them up."""

from app.models.product_view import ProductView
from app.models.shop_settings import (
    DEFAULT_SETTINGS,
    ShopSettings,
    ShopSettingsRead,
    TimerPosition,
)
from app.models.tenant import Tenant, TenantRead

__all__ = [
    "DEFAULT_SETTINGS",
    "ProductView",
    "ShopSettings",
    "ShopSettingsRead",
    "Tenant",
    "TenantRead",
    "TimerPosition",
]
