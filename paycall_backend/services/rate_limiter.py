"""
Demo session rate limiting
Fixed window counters in Redis; the key expires with its window. Fails open
"""

import math
import logging
from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError

from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)

class RateLimiter:
    """N session starts per window per identity"""

    def __init__(self, max_requests: int = None, window_seconds: int = None, prefix: str = "demo-ratelimit"):
        self.max_requests = max_requests or settings.DEMO_RATE_LIMIT_MAX
        self.window_seconds = window_seconds or settings.DEMO_RATE_LIMIT_WINDOW
        self.prefix = prefix

    def _key(self, identity: str) -> str:
        return f"{self.prefix}:{identity}"

    async def hit(self, redis_client: Optional[redis.Redis], identity: str) -> int:
        """
        Count one session start for identity.

        Returns the count inside the current window, raises RateLimitError
        when the cap is already reached. Store errors let the request through.
        """
        if redis_client is None:
            logger.warning("Rate limiter has no redis client; allowing request")
            return 0

        key = self._key(identity)

        try:
            # Use Redis pipeline for atomic operations
            pipe = redis_client.pipeline()

            # Open the window only if no counter exists
            pipe.set(key, 0, ex=self.window_seconds, nx=True)
            pipe.incr(key)
            pipe.ttl(key)

            _, count, ttl = await pipe.execute()

        except RedisError as e:
            logger.error(f"Rate limit check failed for {identity}: {e}")
            return 0

        if count > self.max_requests:
            remaining = ttl if ttl > 0 else self.window_seconds
            reset_in = math.ceil(remaining / 60)
            raise RateLimitError(
                f"Demo limited to {self.max_requests} runs per hour. "
                f"Try again in {reset_in} minutes.",
                reset_in
            )

        return count

demo_rate_limiter = RateLimiter()
