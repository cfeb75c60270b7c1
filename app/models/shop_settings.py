"""ShopSettings model — display configuration for the storefront timer."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class TimerPosition(StrEnum):
    TOP = "top"
    BOTTOM = "bottom"
    FLOATING = "floating"


DEFAULT_SETTINGS: dict = {
    "timer_color": "#FF0000",
    "timer_position": TimerPosition.TOP.value,
    "timer_template": 1,
    "font_size": 16,
}


class ShopSettings(TimestampMixin, SQLModel, table=True):
    __tablename__ = "shop_settings"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    shop_domain: str = Field(max_length=255, unique=True, nullable=False, index=True)

    timer_color: str = Field(default=DEFAULT_SETTINGS["timer_color"], max_length=20)
    timer_position: str = Field(default=DEFAULT_SETTINGS["timer_position"], max_length=20)
    timer_template: int = Field(default=DEFAULT_SETTINGS["timer_template"])
    font_size: int = Field(default=DEFAULT_SETTINGS["font_size"])


# ── Pydantic schemas ─────────────────────────────────────────

class ShopSettingsRead(SQLModel):
    timer_color: str
    timer_position: str
    timer_template: int
    font_size: int
    updated_at: datetime
