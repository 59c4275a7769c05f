import redis.asyncio as aioredis
from redis.asyncio import Redis
from typing import Optional

from app.core.config import settings
from app.core.logging_config import logger


# INCR and set the window expiry on the first hit in one server-side step, so
# concurrent callers never observe a counter without a TTL.
FIXED_WINDOW_INCR_SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return current
"""


class RedisClient:
    """Redis client shared by the rate-limit store and health checks"""

    def __init__(self):
        self.redis: Optional[Redis] = None

    @property
    def is_connected(self) -> bool:
        return self.redis is not None

    async def connect(self, url: Optional[str] = None):
        """Connect to Redis"""
        try:
            self.redis = aioredis.from_url(
                url or settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
            await self.redis.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection error: {e}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
        logger.info("Redis disconnected")

    async def ping(self) -> bool:
        """Check Redis is reachable (health checks)"""
        if not self.redis:
            return False
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Redis PING error: {e}")
            return False

    async def incr_fixed_window(self, key: str, window_seconds: int) -> int:
        """
        Atomically increment a fixed-window counter and return the new count.

        Errors propagate: the caller decides how to fail (the quote gate fails
        closed).
        """
        if not self.redis:
            raise ConnectionError("Redis client is not connected")
        return int(await self.redis.eval(FIXED_WINDOW_INCR_SCRIPT, 1, key, window_seconds))


# Create Redis client instance
redis_client = RedisClient()

