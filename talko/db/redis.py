"""Shared Redis pool and the usage ledger built on it.

Redis holds only the anonymous usage counters (``usage:<identity>:<feature>``);
everything durable lives in the SQL database.
"""

import redis.asyncio as redis
import structlog

from talko.core.config import get_settings
from talko.services.usage_ledger import KEY_PREFIX, UsageLedger

logger = structlog.get_logger(__name__)

_redis: redis.Redis | None = None


async def init_redis(url: str | None = None) -> None:
    """Open the shared pool and ping it; startup fails if Redis is unreachable."""
    global _redis

    if _redis is not None:
        return

    settings = get_settings()
    _redis = redis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
    )
    await _redis.ping()

    pool_kwargs = _redis.connection_pool.connection_kwargs
    logger.info("redis_connected", host=pool_kwargs.get("host"), db=pool_kwargs.get("db"))


async def close_redis() -> None:
    global _redis

    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """Return the shared Redis client.

    Raises RuntimeError if init_redis() has not been called.
    """
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def get_usage_ledger() -> UsageLedger:
    """Usage ledger over the shared pool. FastAPI dependency; overridden in tests."""
    return UsageLedger(get_redis(), window_hours=get_settings().anonymous_window_hours)


async def ledger_status(ledger: UsageLedger) -> dict:
    """Ping the ledger's Redis and count live usage counters."""
    await ledger.redis.ping()
    tracked = 0
    async for _ in ledger.redis.scan_iter(match=f"{KEY_PREFIX}:*", count=500):
        tracked += 1
    return {
        "backend": "redis",
        "windowHours": int(ledger.window.total_seconds() // 3600),
        "trackedCounters": tracked,
    }
