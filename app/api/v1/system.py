"""System health endpoint — checks connectivity to all backing services."""

import time

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text

from app.api.deps import Session

router = APIRouter(prefix="/system", tags=["system"])


class ServiceHealth(BaseModel):
    status: str  # "ok" or "error"
    detail: str | None = None
    version: str | None = None
    latency_ms: int | None = None


class HealthResponse(BaseModel):
    status: str
    postgres: ServiceHealth
    redis: ServiceHealth


@router.get("/health", response_model=HealthResponse)
async def system_health(request: Request, session: Session) -> HealthResponse:
    """Check connectivity to the durable store and Redis."""
    pg = await _check_store(session)
    rd = await _check_redis(request)

    overall = "ok" if all(s.status == "ok" for s in (pg, rd)) else "degraded"
    return HealthResponse(status=overall, postgres=pg, redis=rd)


async def _check_store(session) -> ServiceHealth:
    try:
        t0 = time.monotonic()
        await session.execute(text("SELECT 1"))
        latency = int((time.monotonic() - t0) * 1000)
        return ServiceHealth(status="ok", latency_ms=latency)
    except Exception as exc:
        return ServiceHealth(status="error", detail=str(exc)[:200])


async def _check_redis(request: Request) -> ServiceHealth:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return ServiceHealth(status="error", detail="Redis client not configured")
    try:
        t0 = time.monotonic()
        pong = await redis.ping()
        latency = int((time.monotonic() - t0) * 1000)
        info = await redis.info("server")
        version = info.get("redis_version")
        return ServiceHealth(
            status="ok" if pong else "error",
            version=f"Redis {version}" if version else None,
            latency_ms=latency,
        )
    except Exception as exc:
        return ServiceHealth(status="error", detail=str(exc)[:200])
