"""Tests for view registration: dedup, counting and failure handling."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, select

from app.core.cache import ActiveViewers, DedupCache
from app.core.errors import InvalidRequest, TransientStoreError
from app.models.product_view import ProductView
from app.services import tenant_store
from app.services.metering import register_view

SHOP = "views.myshopify.com"
TIMEOUT = 5.0


async def _view_rows(session, shop: str = SHOP) -> int:
    result = await session.execute(
        select(func.count()).select_from(ProductView).where(ProductView.shop_domain == shop)
    )
    return result.scalar_one()


async def _view_count(session, shop: str = SHOP) -> int:
    tenant = await tenant_store.get_tenant_stats(session, shop)
    return tenant.view_count


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("shop", "product_id", "session_id"),
    [
        (None, "p1", "s1"),
        ("", "p1", "s1"),
        (SHOP, None, "s1"),
        (SHOP, "  ", "s1"),
        (SHOP, "p1", None),
        (SHOP, "p1", ""),
    ],
)
async def test_missing_identifiers_rejected(session, dedup, shop, product_id, session_id):
    with pytest.raises(InvalidRequest):
        await register_view(session, dedup, shop, product_id, session_id, timeout=TIMEOUT)


@pytest.mark.asyncio
async def test_first_view_counts(session, dedup, install_shop):
    await install_shop(SHOP)

    result = await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)

    assert result.registered is True
    assert result.duplicate is False
    assert await _view_count(session) == 1


@pytest.mark.asyncio
async def test_counted_view_touches_normalized_viewer_key(session, dedup, fake_redis, install_shop):
    await install_shop(SHOP)
    viewers = ActiveViewers(fake_redis)

    await register_view(
        session, dedup, f"  {SHOP} ", 8123456789, "s1", timeout=TIMEOUT, viewers=viewers
    )
    # Duplicate leaves the window alone
    await register_view(session, dedup, SHOP, "8123456789", "s1", timeout=TIMEOUT, viewers=viewers)

    assert await viewers.count(SHOP, "8123456789") == 1
    assert await _view_rows(session) == 1


@pytest.mark.asyncio
async def test_repeat_view_hits_cache_without_store_write(session, dedup, install_shop):
    await install_shop(SHOP)
    await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)

    with patch(
        "app.services.metering.tenant_store.insert_view_record_once",
        AsyncMock(),
    ) as insert:
        result = await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)

    insert.assert_not_called()
    assert result.registered is False
    assert result.duplicate is True
    assert await _view_count(session) == 1


@pytest.mark.asyncio
async def test_expired_marker_still_deduplicated(session, dedup, fake_redis, install_shop):
    await install_shop(SHOP)
    await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)
    fake_redis.flushall()

    result = await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)

    assert result.registered is False
    assert result.duplicate is True
    assert await _view_count(session) == 1
    assert await _view_rows(session) == 1


@pytest.mark.asyncio
async def test_distinct_products_and_sessions_count(session, dedup, install_shop):
    await install_shop(SHOP)
    for product, visitor in [("p1", "s1"), ("p2", "s1"), ("p1", "s2"), ("p1", "s1")]:
        await register_view(session, dedup, SHOP, product, visitor, timeout=TIMEOUT)

    assert await _view_count(session) == 3


@pytest.mark.asyncio
async def test_numeric_product_id_is_coerced(session, dedup, install_shop):
    await install_shop(SHOP)
    first = await register_view(session, dedup, SHOP, 7421, "s1", timeout=TIMEOUT)
    again = await register_view(session, None, SHOP, "7421", "s1", timeout=TIMEOUT)

    assert first.registered is True
    assert again.duplicate is True


@pytest.mark.asyncio
async def test_cache_outage_fails_open(session, broken_redis, install_shop):
    await install_shop(SHOP)
    cache = DedupCache(broken_redis)

    first = await register_view(session, cache, SHOP, "p1", "s1", timeout=TIMEOUT)
    second = await register_view(session, cache, SHOP, "p1", "s1", timeout=TIMEOUT)

    assert first.registered is True
    assert second.duplicate is True
    assert await _view_count(session) == 1


@pytest.mark.asyncio
async def test_unknown_shop_view_is_recorded(session, dedup):
    result = await register_view(session, dedup, "fresh.myshopify.com", "p1", "s1", timeout=TIMEOUT)

    assert result.registered is True
    assert await tenant_store.get_tenant_stats(session, "fresh.myshopify.com") is None
    assert await _view_rows(session, "fresh.myshopify.com") == 1


@pytest.mark.asyncio
async def test_store_failure_is_transient_and_clears_marker(session, dedup, install_shop):
    await install_shop(SHOP)
    failing = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("server closed")))

    with (
        patch("app.services.metering.tenant_store.insert_view_record_once", failing),
        pytest.raises(TransientStoreError),
    ):
        await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)

    # A retry by the caller must not be swallowed by the cache
    retry = await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)
    assert retry.registered is True
    assert await _view_count(session) == 1


@pytest.mark.asyncio
async def test_increment_failure_rolls_back_view_record(session, dedup, install_shop):
    await install_shop(SHOP)
    failing = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("timeout")))

    with (
        patch("app.services.metering.tenant_store.increment_view_count", failing),
        pytest.raises(TransientStoreError),
    ):
        await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)

    assert await _view_rows(session) == 0
    retry = await register_view(session, dedup, SHOP, "p1", "s1", timeout=TIMEOUT)
    assert retry.registered is True
    assert await _view_count(session) == 1


@pytest.mark.asyncio
async def test_store_timeout_is_transient(session, dedup, install_shop):
    await install_shop(SHOP)

    async def _hang(*args, **kwargs):
        await asyncio.sleep(5)

    with (
        patch("app.services.metering.tenant_store.insert_view_record_once", _hang),
        pytest.raises(TransientStoreError),
    ):
        await register_view(session, dedup, SHOP, "p1", "s1", timeout=0.05)


# ── Concurrency ──────────────────────────────────────────────

@pytest.fixture
async def file_session_factory(tmp_path):
    """File-backed SQLite so each task gets its own connection."""
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'views.db'}",
        connect_args={"timeout": 30},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    await eng.dispose()


async def _concurrent_views(factory, dedup, n: int):
    async def _one():
        async with factory() as sess:
            return await register_view(sess, dedup, SHOP, "p1", "s1", timeout=30)

    return await asyncio.gather(*(_one() for _ in range(n)))


@pytest.mark.asyncio
async def test_concurrent_duplicates_count_once_without_cache(file_session_factory):
    async with file_session_factory() as sess:
        await tenant_store.upsert_tenant(sess, SHOP, "shpat_test")
        await sess.commit()

    results = await _concurrent_views(file_session_factory, None, 8)

    assert sum(r.registered for r in results) == 1
    assert sum(r.duplicate for r in results) == 7
    async with file_session_factory() as sess:
        assert await _view_count(sess) == 1
        assert await _view_rows(sess) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicates_count_once_with_cache(file_session_factory, dedup):
    async with file_session_factory() as sess:
        await tenant_store.upsert_tenant(sess, SHOP, "shpat_test")
        await sess.commit()

    results = await _concurrent_views(file_session_factory, dedup, 8)

    assert sum(r.registered for r in results) == 1
    async with file_session_factory() as sess:
        assert await _view_count(sess) == 1


@pytest.mark.asyncio
async def test_concurrent_distinct_sessions_lose_no_updates(file_session_factory):
    async with file_session_factory() as sess:
        await tenant_store.upsert_tenant(sess, SHOP, "shpat_test")
        await sess.commit()

    async def _one(i: int):
        async with file_session_factory() as sess:
            return await register_view(sess, None, SHOP, "p1", f"s{i}", timeout=30)

    results = await asyncio.gather(*(_one(i) for i in range(10)))

    assert all(r.registered for r in results)
    async with file_session_factory() as sess:
        assert await _view_count(sess) == 10
