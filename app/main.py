"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arq import create_pool
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import from_url
from redis.exceptions import RedisError

from app.api.v1 import v1_router
from app.core.cache import ActiveViewers, DedupCache
from app.core.config import get_settings
from app.core.database import create_engine_from_settings, create_session_factory, init_db
from app.workers.main import redis_settings_from_url

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    # Startup: acquire store / cache handles for the process
    engine = create_engine_from_settings(settings)
    await init_db(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    redis = from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.cache_timeout_seconds,
        socket_connect_timeout=settings.cache_timeout_seconds,
    )
    app.state.redis = redis
    app.state.dedup_cache = DedupCache(redis, ttl=settings.view_dedup_ttl_seconds)
    app.state.active_viewers = ActiveViewers(redis, window=settings.active_viewer_window_seconds)

    try:
        app.state.arq_pool = await create_pool(
            redis_settings_from_url(settings.redis_url)
        )
    except (RedisError, OSError):
        logger.warning("Job queue unavailable; billing webhooks will be applied inline")
        app.state.arq_pool = None

    yield

    # Shutdown: release everything acquired above
    if app.state.arq_pool is not None:
        await app.state.arq_pool.aclose()
    await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="Urgency Timer",
    version="0.2.0",
    description="View metering and free-tier quota for the storefront urgency timer",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────
# The widget runs on every storefront domain.
_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok"}
