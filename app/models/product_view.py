"""ProductView model — one counted view per (shop, product, session)."""

import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.base import CreatedMixin, new_uuid

VIEW_KEY_CONSTRAINT = "uq_product_views_key"


class ProductView(CreatedMixin, SQLModel, table=True):
    __tablename__ = "product_views"
    __table_args__ = (
        UniqueConstraint("shop_domain", "product_id", "session_id", name=VIEW_KEY_CONSTRAINT),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    # No foreign key: views for a shop that has not finished installing are still recorded.
    shop_domain: str = Field(max_length=255, nullable=False, index=True)
    product_id: str = Field(max_length=255, nullable=False)
    session_id: str = Field(max_length=255, nullable=False)
