"""Shared base fields for all models."""

import uuid
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class CreatedMixin(SQLModel):
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class TimestampMixin(CreatedMixin):
    """Created / updated timestamps for mutable rows.

    ``updated_at`` is set explicitly by the store statements, which bypass
    ORM attribute events.
    """

    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
