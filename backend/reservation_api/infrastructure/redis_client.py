"""
Async Redis client for the event listing cache.
Separated from business logic for clean architecture.
"""

from typing import Optional

import redis.asyncio as redis

from reservation_api.core.config import get_settings
from reservation_api.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Lazily connected singleton. Returns None when Redis is disabled or down."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    async def get_client(cls) -> Optional[redis.Redis]:
        settings = get_settings()
        if not settings.REDIS_ENABLED:
            return None

        if cls._instance is None:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            try:
                await client.ping()
            except redis.RedisError as e:
                logger.error("redis_connection_failed", error=str(e))
                await client.aclose()
                return None
            logger.info("redis_connected", url=settings.REDIS_URL)
            cls._instance = client
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None


async def get_redis() -> Optional[redis.Redis]:
    """Get Redis client instance."""
    return await RedisClient.get_client()


async def close_redis() -> None:
    await RedisClient.close()
