"""
Throttle for re-sending verification emails
"""
import logging

from fastapi import Depends
from redis.exceptions import RedisError

from app.config import settings
from app.core.exceptions import RateLimitError
from app.utils.redis_client import RedisClient, get_throttle_redis

logger = logging.getLogger(__name__)


class VerificationThrottle:
    """Per-address resend cooldown and hourly cap, kept in Redis"""

    def __init__(self, redis_client: RedisClient):
        self.redis = redis_client
        self.cooldown_seconds = settings.VERIFICATION_RESEND_COOLDOWN_SECONDS
        self.max_per_hour = settings.VERIFICATION_RATE_LIMIT_PER_HOUR

    def _get_resend_key(self, email: str) -> str:
        """Get Redis key for resend cooldown"""
        return f"verify_resend:{email}"

    def _get_rate_limit_key(self, email: str) -> str:
        """Get Redis key for the hourly counter"""
        return f"verify_rate_limit:{email}"

    async def check_and_mark(self, email: str):
        """
        Record a send attempt for ``email``

        Without a working Redis connection, whether it never came up or drops
        mid-request, the throttle is skipped rather than blocking
        verification entirely.

        Raises:
            RateLimitError: If the hourly cap is reached or the cooldown has not elapsed
        """
        if not self.redis.is_connected:
            logger.warning("Redis unavailable; verification resend is not throttled")
            return

        try:
            await self._check_and_mark(email)
        except RedisError as e:
            logger.warning(f"Redis error ({type(e).__name__}: {e}); verification resend is not throttled")

    async def _check_and_mark(self, email: str):
        rate_limit_key = self._get_rate_limit_key(email)
        sent_count = await self.redis.get(rate_limit_key)
        if sent_count and int(sent_count) >= self.max_per_hour:
            raise RateLimitError(
                "Too many verification emails requested. Please try again later.",
                retry_after=await self.redis.ttl(rate_limit_key),
            )

        resend_key = self._get_resend_key(email)
        if await self.redis.exists(resend_key):
            ttl = await self.redis.ttl(resend_key)
            raise RateLimitError(f"Please wait {ttl} seconds before requesting another email", retry_after=ttl)

        await self.redis.set(resend_key, "1", ex=self.cooldown_seconds)

        if not sent_count:
            await self.redis.set(rate_limit_key, "1", ex=3600)  # 1 hour
        else:
            await self.redis.incr(rate_limit_key)


async def get_verification_throttle(
    redis_client: RedisClient = Depends(get_throttle_redis),
) -> VerificationThrottle:
    """Dependency for the verification throttle"""
    return VerificationThrottle(redis_client)
