"""Rate limiting implementation."""

import logging
import time
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from polygon_weather.config import (
    REDIS_URL,
    RATE_LIMIT_REQUESTS_PER_SECOND,
    RATE_LIMIT_REDIS_KEY_PREFIX
)

logger = logging.getLogger(__name__)


class RateLimiter:
    """Global requests-per-second limiter on a Redis sorted set.

    Counts upstream-bound requests across all clients, since every polygon
    refresh fans out into several Open-Meteo calls. Requests are allowed if
    Redis is unavailable.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        max_requests: int = RATE_LIMIT_REQUESTS_PER_SECOND
    ):
        """Initialize rate limiter.

        Args:
            redis_client: Optional Redis client. If None, creates new client.
            max_requests: Requests allowed per window
        """
        self.redis_client = redis_client or redis.from_url(REDIS_URL)
        self.max_requests = max_requests
        self.sorted_set_key = f"{RATE_LIMIT_REDIS_KEY_PREFIX}:global"
        self.window_size = 1.0  # seconds

    async def is_allowed(self) -> tuple[bool, int]:
        """Check if a request is allowed under the rate limit.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        current_time = time.time()
        # Microsecond scores
        current_timestamp = int(current_time * 1000000)
        window_start = (current_time - self.window_size) * 1000000

        try:
            pipe = self.redis_client.pipeline()
            pipe.zadd(self.sorted_set_key, {str(current_timestamp): current_timestamp})
            pipe.zremrangebyscore(self.sorted_set_key, 0, window_start)
            pipe.zcard(self.sorted_set_key)
            pipe.expire(self.sorted_set_key, int(self.window_size * 2))
            _, _, request_count, _ = await pipe.execute()
        except (RedisError, OSError) as e:
            logger.error(f"Rate limiter error, allowing request: {e}")
            return True, 0

        if request_count > self.max_requests:
            retry_after = 2
            logger.debug(f"Rate limited: count={request_count}, max={self.max_requests}, retry_after={retry_after}")
            return False, retry_after

        logger.debug(f"Not rate limited: count={request_count}, max={self.max_requests}")
        return True, 0

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
