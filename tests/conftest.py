"""Shared test fixtures — async SQLite in-memory DB, Redis double + test client."""

import os
import time
from collections.abc import AsyncGenerator

from cryptography.fernet import Fernet

os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("INTERNAL_API_TOKEN", "test-internal-token")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-webhook-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import app.models  # noqa: E402, F401
from app.api.deps import get_active_viewers, get_dedup_cache, get_job_queue  # noqa: E402
from app.core.cache import ActiveViewers, DedupCache  # noqa: E402
from app.core.database import get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.services.tenant_store import upsert_tenant  # noqa: E402

INTERNAL_TOKEN = os.environ["INTERNAL_API_TOKEN"]
WEBHOOK_SECRET = os.environ["SHOPIFY_API_SECRET"]


class FakeRedis:
    """In-process stand-in for the handful of Redis commands the service uses."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._expiry: dict[str, float] = {}
        # (transaction, [command, ...]) per executed pipeline
        self.executed: list[tuple[bool, list[str]]] = []

    def _alive(self, key: str) -> bool:
        deadline = self._expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return key in self._data

    async def set(self, key, value, nx=False, ex=None):
        if nx and self._alive(key):
            return None
        self._data[key] = str(value)
        if ex:
            self._expiry[key] = time.monotonic() + ex
        else:
            self._expiry.pop(key, None)
        return True

    async def get(self, key):
        return self._data[key] if self._alive(key) else None

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
                self._data.pop(key, None)
                self._expiry.pop(key, None)
        return removed

    async def incr(self, key):
        value = int(self._data[key]) + 1 if self._alive(key) else 1
        self._data[key] = str(value)
        return value

    async def expire(self, key, seconds):
        if not self._alive(key):
            return False
        self._expiry[key] = time.monotonic() + seconds
        return True

    def pipeline(self, transaction=True):
        return FakePipeline(self, transaction)

    async def ping(self):
        return True

    async def info(self, section=None):
        return {"redis_version": "7.2.4"}

    def ttl_of(self, key: str) -> float | None:
        deadline = self._expiry.get(key)
        return None if deadline is None else deadline - time.monotonic()

    def flushall(self) -> None:
        """Drop every key, as if all TTLs had elapsed."""
        self._data.clear()
        self._expiry.clear()


class FakePipeline:
    """Queues commands and runs them against the owning FakeRedis on execute()."""

    def __init__(self, redis, transaction: bool) -> None:
        self._redis = redis
        self._transaction = transaction
        self._queued: list[tuple[str, tuple]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self._queued.clear()

    def incr(self, key):
        self._queued.append(("incr", (key,)))
        return self

    def expire(self, key, seconds):
        self._queued.append(("expire", (key, seconds)))
        return self

    async def execute(self):
        batch, self._queued = self._queued, []
        self._redis.executed.append((self._transaction, [name for name, _ in batch]))
        return [await getattr(self._redis, name)(*args) for name, args in batch]


class BrokenPipeline(FakePipeline):
    async def execute(self):
        self._queued.clear()
        raise RedisConnectionError("Connection refused")


class BrokenRedis:
    """Every command fails the way an unreachable Redis does."""

    def pipeline(self, transaction=True):
        return BrokenPipeline(None, transaction)

    def __getattr__(self, name):
        async def _fail(*args, **kwargs):
            raise RedisConnectionError("Connection refused")
        return _fail


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def dedup(fake_redis) -> DedupCache:
    return DedupCache(fake_redis, ttl=3600)


@pytest.fixture
def internal_headers() -> dict:
    return {"Authorization": f"Bearer {INTERNAL_TOKEN}"}


@pytest.fixture
async def client(session, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session and Redis overrides."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_dedup_cache] = lambda: DedupCache(fake_redis)
    app.dependency_overrides[get_active_viewers] = lambda: ActiveViewers(fake_redis)
    app.dependency_overrides[get_job_queue] = lambda: None
    app.state.redis = fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.redis


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


@pytest.fixture
def install_shop(session):
    """Create a tenant row the way the OAuth collaborator would."""

    async def _install(shop: str, token: str = "shpat_test"):
        tenant = await upsert_tenant(session, shop, token)
        await session.commit()
        return tenant

    return _install
