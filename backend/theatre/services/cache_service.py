"""
Redis caching for the seat map.

CACHING STRATEGY
================

What we cache:
  - The serialized seat map of a layout (geometry + every seat's flag)
  - Key pattern: "seatmap:layout={layout_id}"

Why:
  - Every user opening the booking page reads the full grid
  - The grid only changes on booking, release, reassignment, freeze or
    layout regeneration

Invalidation:
  - Every write path above calls invalidate_seat_map() after its service
    call returns
  - A short TTL is the safety net

Correctness never depends on the cache: booking decisions are taken
against the database with a conditional update. A stale map only means a
user may click a seat that is already gone and get a 409.

Redis is advisory. Any Redis failure is logged and the request falls back
to the database (fail open).
"""

import json
from typing import Optional

import redis.asyncio as redis

from theatre.core.config import get_settings
from theatre.core.logging import get_logger
from theatre.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)

SEAT_MAP_PREFIX = "seatmap:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await client.ping()
            _redis_client = client
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_seat_map_key(layout_id: int) -> str:
    return f"{SEAT_MAP_PREFIX}layout={layout_id}"


async def get_cached_seat_map(layout_id: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_seat_map_key(layout_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_seat_map(layout_id: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_seat_map_key(layout_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_seat_map() -> None:
    """Drop every cached seat map. Uses SCAN over the key prefix."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SEAT_MAP_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
