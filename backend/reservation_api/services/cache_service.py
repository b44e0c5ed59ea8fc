"""
Redis caching service for the public event listing.

CACHING STRATEGY
================

What we cache:
  - The published event listing (JSON-serialized event definitions)
  - Cache key pattern: "events:list:upcoming={upcoming}"

What we never cache:
  - Reservation counts. Capacity decisions and the remaining-seat figure
    are always computed from the database (services/capacity.py)

Invalidation:
  - Any event create/update/delete deletes every "events:list:*" key
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Redis is advisory: every failure is logged and treated as a cache miss.
"""

import json
from typing import Optional

import redis.asyncio as redis

from reservation_api.core.config import get_settings
from reservation_api.core.logging import get_logger
from reservation_api.core.metrics import record_cache_operation
from reservation_api.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

EVENT_LIST_PREFIX = "events:list:"


def _make_event_list_key(upcoming_only: bool) -> str:
    return f"{EVENT_LIST_PREFIX}upcoming={upcoming_only}"


async def get_cached_events(upcoming_only: bool) -> Optional[dict]:
    """Retrieve cached published event listing."""
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_events(upcoming_only: bool, data: dict) -> None:
    """Cache published event listing with TTL."""
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_event_list_key(upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached event listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
