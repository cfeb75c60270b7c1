"""FastAPI dependencies: store session, cache handles, job queue and internal auth."""

from typing import Annotated

from arq.connections import ArqRedis
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import ActiveViewers, DedupCache
from app.core.config import Settings, get_settings
from app.core.database import get_session
from app.core.security import verify_internal_token

bearer_scheme = HTTPBearer()


def get_dedup_cache(request: Request) -> DedupCache | None:
    return getattr(request.app.state, "dedup_cache", None)


def get_active_viewers(request: Request) -> ActiveViewers | None:
    return getattr(request.app.state, "active_viewers", None)


def get_job_queue(request: Request) -> ArqRedis | None:
    """ARQ pool for deferred work; None when Redis was unreachable at startup."""
    return getattr(request.app.state, "arq_pool", None)


async def require_internal_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """Gate admin / install routes behind the shared internal bearer token."""
    if not verify_internal_token(credentials.credentials, settings.internal_api_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal token",
        )


# Typed shorthand for use in route signatures
Session = Annotated[AsyncSession, Depends(get_session)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Dedup = Annotated[DedupCache | None, Depends(get_dedup_cache)]
Viewers = Annotated[ActiveViewers | None, Depends(get_active_viewers)]
JobQueue = Annotated[ArqRedis | None, Depends(get_job_queue)]
InternalAuth = Depends(require_internal_token)
