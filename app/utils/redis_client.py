"""
Redis connection used for short-lived throttling counters
"""
import logging
from typing import Optional

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Thin async wrapper that can be constructed before Redis is reachable

    ``is_connected`` stays False until ``connect`` succeeds, so callers can
    degrade instead of failing when Redis is down.
    """

    def __init__(self, url: str):
        self.url = url
        self.client: Optional[redis.Redis] = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def connect(self):
        """Open the pool and ping once; raises if Redis does not answer"""
        client = redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        self.client = client
        logger.info(f"Redis connected ({self.url})")

    async def disconnect(self):
        if self.client is None:
            return
        await self.client.aclose()
        self.client = None
        logger.info("Redis disconnected")

    def _connection(self) -> redis.Redis:
        if self.client is None:
            raise RuntimeError("Redis is not connected")
        return self.client

    async def get(self, key: str) -> Optional[str]:
        return await self._connection().get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        """Store ``value``; ``ex`` is a TTL in seconds"""
        await self._connection().set(key, value, ex=ex)

    async def exists(self, key: str) -> bool:
        return await self._connection().exists(key) > 0

    async def incr(self, key: str) -> int:
        return await self._connection().incr(key)

    async def ttl(self, key: str) -> int:
        """Seconds left before ``key`` expires (-1 without TTL, -2 if missing)"""
        return await self._connection().ttl(key)


throttle_redis_client = RedisClient(settings.redis_throttle_url)


async def get_throttle_redis() -> RedisClient:
    """Dependency for the throttle's Redis connection"""
    return throttle_redis_client
