"""Redis-backed sliding window store for multi-instance deployments.

Each key is a sorted set of request timestamps (score = epoch ms). The
prune, count and insert run inside one Lua script so concurrent requests
from any number of instances see a consistent window.
"""

import logging
import math
from uuid import uuid4

import redis

from backend.app.rate_limit.types import RateLimitConfig, RateLimitDecision

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit:"

SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local member = ARGV[4]

-- Drop requests that left the window
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)

local count = redis.call('ZCARD', key)
if count >= limit then
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    return {0, tonumber(oldest[2]), count}
end

redis.call('ZADD', key, now, member)
redis.call('PEXPIRE', key, window)
return {1, 0, count + 1}
"""


class RedisRateLimitStore:
    """Sliding window store on Redis sorted sets."""

    # Keys expire server-side via PEXPIRE
    sweeps_locally = False

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        """Create a store connected to the given Redis URL."""
        return cls(redis.from_url(url, decode_responses=True))

    def hit(self, key: str, config: RateLimitConfig, now_ms: float) -> RateLimitDecision:
        """Check and consume atomically; fails open if Redis is unreachable."""
        now = int(now_ms)
        try:
            allowed, oldest, count = self.client.eval(
                SLIDING_WINDOW_LUA,
                1,
                f"{KEY_PREFIX}{key}",
                str(config.limit),
                str(config.window_ms),
                str(now),
                f"{now}-{uuid4().hex}",
            )
        except redis.RedisError:
            # If rate limiting fails, allow request (fail open)
            logger.warning("Rate limit store unavailable for %s", key, exc_info=True)
            return RateLimitDecision(
                allowed=True, retry_after_seconds=0, remaining=config.limit
            )

        if int(allowed):
            return RateLimitDecision(
                allowed=True,
                retry_after_seconds=0,
                remaining=config.limit - int(count),
            )

        retry_after_ms = int(oldest) + config.window_ms - now
        return RateLimitDecision(
            allowed=False,
            retry_after_seconds=max(1, math.ceil(retry_after_ms / 1000)),
            remaining=0,
        )

    def sweep(self, now_ms: float) -> int:
        """Nothing to do: Redis expires idle keys on its own."""
        return 0

    def reset(self, key: str) -> None:
        """Forget all requests recorded for a key."""
        self.client.delete(f"{KEY_PREFIX}{key}")
