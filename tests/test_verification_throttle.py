"""
Tests for the verification resend throttle
"""
import pytest
from fastapi import status
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.exceptions import RateLimitError
from app.main import app
from app.services.verification_throttle import VerificationThrottle, get_verification_throttle
from app.utils.redis_client import RedisClient


class DroppedRedis(RedisClient):
    """Connected at startup, then every command fails"""

    def __init__(self):
        super().__init__("redis://dropped")

    @property
    def is_connected(self) -> bool:
        return True

    async def get(self, key):
        raise RedisConnectionError("Connection reset by peer")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("Connection reset by peer")

    async def exists(self, key):
        raise RedisConnectionError("Connection reset by peer")


class TestVerificationThrottle:

    async def test_first_send_sets_cooldown_and_counter(self, memory_redis):
        throttle = VerificationThrottle(memory_redis)

        await throttle.check_and_mark("a@x.com")

        assert memory_redis.values["verify_resend:a@x.com"] == "1"
        assert memory_redis.ttls["verify_resend:a@x.com"] == throttle.cooldown_seconds
        assert memory_redis.values["verify_rate_limit:a@x.com"] == "1"
        assert memory_redis.ttls["verify_rate_limit:a@x.com"] == 3600

    async def test_cooldown(self, memory_redis):
        throttle = VerificationThrottle(memory_redis)
        await throttle.check_and_mark("a@x.com")

        with pytest.raises(RateLimitError) as exc_info:
            await throttle.check_and_mark("a@x.com")

        assert exc_info.value.status_code == 429
        assert exc_info.value.details == {"retryAfter": throttle.cooldown_seconds}

    async def test_addresses_are_throttled_independently(self, memory_redis):
        throttle = VerificationThrottle(memory_redis)

        await throttle.check_and_mark("a@x.com")
        await throttle.check_and_mark("b@x.com")

    async def test_hourly_cap(self, memory_redis):
        throttle = VerificationThrottle(memory_redis)

        for _ in range(throttle.max_per_hour):
            await throttle.check_and_mark("a@x.com")
            # Cooldown elapses between sends
            del memory_redis.values["verify_resend:a@x.com"]

        with pytest.raises(RateLimitError, match="Too many verification emails"):
            await throttle.check_and_mark("a@x.com")

    async def test_skipped_without_redis(self):
        throttle = VerificationThrottle(RedisClient("redis://unused"))

        for _ in range(10):
            await throttle.check_and_mark("a@x.com")

    async def test_skipped_when_redis_drops_mid_request(self):
        throttle = VerificationThrottle(DroppedRedis())

        await throttle.check_and_mark("a@x.com")


class TestResendWhenRedisDrops:

    @pytest.fixture
    def dropped_throttle(self, client):
        # Registered after the client fixture so it wins over the default override
        app.dependency_overrides[get_verification_throttle] = lambda: VerificationThrottle(DroppedRedis())

    async def test_resend_still_sends(self, client, outbox, test_user_data, dropped_throttle):
        await client.post("/api/v1/auth/register", json=test_user_data)

        response = await client.post(
            "/api/v1/auth/resend-verification", json={"email": test_user_data["email"]}
        )

        assert response.status_code == status.HTTP_200_OK
        assert len(outbox.sent) == 2
