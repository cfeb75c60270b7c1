"""Redis-backed short-lived markers for the storefront hot path.

``DedupCache`` answers "has this session very likely already been counted
for this product" with a single SET NX EX round trip. It is a hint only:
the unique constraint on ``product_views`` is the source of truth, so an
expired or flushed marker never causes a double count.
"""

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.errors import DedupCacheUnavailable

logger = logging.getLogger(__name__)

# Default TTL in seconds
DEFAULT_DEDUP_TTL = 3600
DEFAULT_VIEWER_WINDOW = 300


def _view_key(shop: str, session_id: str, product_id: str) -> str:
    return f"view:{shop}:{session_id}:{product_id}"


def _viewers_key(shop: str, product_id: str) -> str:
    return f"viewers:{shop}:{product_id}"


class DedupCache:
    """Per-(shop, session, product) existence markers with a bounded TTL."""

    def __init__(self, redis: Redis | None, ttl: int = DEFAULT_DEDUP_TTL) -> None:
        self._redis = redis
        self.ttl = ttl

    async def check_and_mark(self, shop: str, session_id: str, product_id: str) -> bool:
        """Return True if the marker already existed; otherwise create it.

        Raises DedupCacheUnavailable when Redis cannot be reached.
        """
        if self._redis is None:
            raise DedupCacheUnavailable("no redis client configured")
        try:
            created = await self._redis.set(
                _view_key(shop, session_id, product_id), "1", nx=True, ex=self.ttl
            )
        except RedisError as exc:
            raise DedupCacheUnavailable(str(exc)) from exc
        return not created

    async def unmark(self, shop: str, session_id: str, product_id: str) -> None:
        """Drop a marker whose durable write did not happen. Never raises."""
        if self._redis is None:
            return
        try:
            await self._redis.delete(_view_key(shop, session_id, product_id))
        except RedisError:
            logger.warning("Could not clear dedup marker for %s/%s", shop, product_id)


class ActiveViewers:
    """Sliding-window count of recent viewers per product (social proof)."""

    def __init__(self, redis: Redis | None, window: int = DEFAULT_VIEWER_WINDOW) -> None:
        self._redis = redis
        self.window = window

    async def touch(self, shop: str, product_id: str) -> int:
        if self._redis is None:
            return 0
        key = _viewers_key(shop, product_id)
        try:
            # MULTI/EXEC so the counter never exists without its expiry
            async with self._redis.pipeline(transaction=True) as pipe:
                count, _ = await pipe.incr(key).expire(key, self.window).execute()
        except RedisError:
            logger.warning("Active viewer update failed for %s/%s", shop, product_id)
            return 0
        return int(count)

    async def count(self, shop: str, product_id: str) -> int:
        if self._redis is None:
            return 0
        try:
            raw = await self._redis.get(_viewers_key(shop, product_id))
        except RedisError:
            logger.warning("Active viewer lookup failed for %s/%s", shop, product_id)
            return 0
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            return 0
