"""ARQ worker entrypoint."""

import logging

from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.database import create_engine_from_settings, create_session_factory, init_db
from app.workers.billing import reconcile_subscription


def redis_settings_from_url(url: str) -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    return RedisSettings.from_dsn(url)


async def startup(ctx: dict) -> None:
    """Called when the worker starts: acquire the store handles for jobs."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    engine = create_engine_from_settings(settings)
    await init_db(engine)
    ctx["engine"] = engine
    ctx["session_factory"] = create_session_factory(engine)
    ctx["store_timeout"] = settings.store_timeout_seconds


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""
    engine = ctx.pop("engine", None)
    if engine is not None:
        await engine.dispose()


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [reconcile_subscription]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings_from_url(get_settings().redis_url)
    max_jobs = 20
    job_timeout = 60
    max_tries = 5


if __name__ == "__main__":
    from arq import run_worker
    run_worker(WorkerSettings)  # type: ignore[arg-type]
