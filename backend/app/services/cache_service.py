"""
Redis cache for the public event listing.

Only stored fields are cached (dates, administrative status, rounds and
their counters). The display status depends on the clock, so it is left
out of the cached payload and derived again on every response. A cached
page may be up to REDIS_CACHE_TTL seconds behind on counters, never on
its Upcoming/Ongoing/Completed label.

Single events, registrations and certificates are always read live:
round moves and capacity checks need the current row.

Any event mutation (create, publish, cancel, round added or moved,
registration admitted) drops every listing page. The TTL is the fallback.

With REDIS_ENABLED=false, or Redis unreachable, every call is a no-op.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

LISTING_PREFIX = "events:list:"

_client: Optional[redis.Redis] = None


async def _connect() -> Optional[redis.Redis]:
    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except Exception as e:
        redis_connection_errors.inc()
        logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
        return None
    logger.info("redis_connected", url=settings.REDIS_URL)
    return client


async def get_redis() -> Optional[redis.Redis]:
    """Shared connection for the cache and the Redis publisher. None when disabled."""
    global _client
    if not settings.REDIS_ENABLED:
        return None
    if _client is None:
        _client = await _connect()
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def listing_key(page: int, page_size: int, status: Optional[str]) -> str:
    return f"{LISTING_PREFIX}{status or 'visible'}:{page}:{page_size}"


async def read_listing(page: int, page_size: int, status: Optional[str]) -> Optional[dict]:
    """Cached listing page, or None on miss."""
    client = await get_redis()
    if client is None:
        return None

    key = listing_key(page, page_size, status)
    try:
        raw = await client.get(key)
    except Exception as e:
        logger.error("cache_read_error", key=key, error=str(e))
        return None

    record_cache_operation("get", "miss" if raw is None else "hit")
    if raw is None:
        return None
    logger.debug("cache_hit", key=key)
    return json.loads(raw)


async def store_listing(page: int, page_size: int, status: Optional[str], payload: dict) -> None:
    client = await get_redis()
    if client is None:
        return

    key = listing_key(page, page_size, status)
    try:
        await client.set(key, json.dumps(payload), ex=settings.REDIS_CACHE_TTL)
        record_cache_operation("set", "stored")
    except Exception as e:
        logger.error("cache_write_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """Drop every cached listing page."""
    client = await get_redis()
    if client is None:
        return

    try:
        keys = [key async for key in client.scan_iter(match=f"{LISTING_PREFIX}*", count=200)]
        if keys:
            await client.unlink(*keys)
        logger.info("listing_cache_invalidated", pages=len(keys))
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def cache_status() -> dict:
    """Connection state and hit ratio for /health."""
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        stats = await client.info("stats")
    except Exception as e:
        return {"status": "error", "error": str(e)}

    hits = stats.get("keyspace_hits", 0)
    misses = stats.get("keyspace_misses", 0)
    lookups = hits + misses
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(100 * hits / lookups, 2) if lookups else 0.0,
    }
