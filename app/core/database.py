"""Async database engine and session factory.

Nothing is created at import time: the FastAPI lifespan and the ARQ worker
each build their own engine from settings and dispose of it on shutdown.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import Settings


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    kwargs: dict = {"echo": False}
    if settings.database_url.startswith("postgresql"):
        kwargs.update(
            pool_size=20,
            max_overflow=10,
            pool_timeout=settings.store_timeout_seconds,
            connect_args={"command_timeout": settings.store_timeout_seconds},
        )
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async DB session."""
    async with request.app.state.session_factory() as session:
        yield session


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Use Alembic migrations in production."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
