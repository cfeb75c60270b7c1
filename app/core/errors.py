"""Error taxonomy for the metering core."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError


class MeteringError(Exception):
    """Base class for errors raised by the metering services."""


class InvalidRequest(MeteringError):
    """Missing or malformed identifiers. Never retried."""


class TransientStoreError(MeteringError):
    """The durable store failed or timed out; the outcome may be unknown."""


class DedupCacheUnavailable(MeteringError):
    """The dedup cache could not be reached. Always absorbed by callers."""


class UnknownTenant(MeteringError):
    """No tenant matches the given shop domain or subscription id."""


class SubscriptionConflict(MeteringError):
    """The subscription id is already held by another tenant. Never retried."""


@asynccontextmanager
async def store_guard(operation: str, timeout: float) -> AsyncIterator[None]:
    """Bound a block of store calls by *timeout* and map failures to TransientStoreError."""
    try:
        async with asyncio.timeout(timeout):
            yield
    except (TimeoutError, PoolTimeoutError) as exc:
        raise TransientStoreError(f"{operation} timed out") from exc
    except DBAPIError as exc:
        raise TransientStoreError(f"{operation} failed: {exc.__class__.__name__}") from exc
