"""Redis-backed sliding-window Rate Limiter

One sorted set per key, scored by admission time in milliseconds. Pruning,
counting and recording run in a single Lua script, so concurrent instances
of the service share one exact window.
"""

import uuid
from typing import Callable, Optional
import redis.asyncio as aioredis
from image_studio.app.services.rate_limiter import RateLimiter, now_ms

IS_ALLOWED_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
if redis.call('ZCARD', key) < limit then
    redis.call('ZADD', key, now, ARGV[4])
    redis.call('PEXPIRE', key, window)
    return 1
end
return 0
"""

RETRY_AFTER_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
if #oldest == 0 then
    return 0
end
local wait = tonumber(oldest[2]) + window - now
if wait < 0 then
    return 0
end
return wait
"""


class RedisRateLimiter(RateLimiter):

    def __init__(
        self,
        redis: aioredis.Redis,
        max_requests: int = 10,
        window_ms: int = 60000,
        prefix: str = "image_studio:ratelimit:",
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(max_requests, window_ms)
        self.redis = redis
        self.prefix = prefix
        self._clock = clock
        self._is_allowed = redis.register_script(IS_ALLOWED_SCRIPT)
        self._retry_after = redis.register_script(RETRY_AFTER_SCRIPT)

    async def is_allowed(self, key: str) -> bool:
        # Unique member so two admissions in the same millisecond both count
        now = self._clock()
        member = f"{now}:{uuid.uuid4().hex}"
        allowed = await self._is_allowed(
            keys=[self.prefix + key],
            args=[now, self.window_ms, self.max_requests, member],
        )
        return int(allowed) == 1

    async def retry_after(self, key: str) -> int:
        wait = await self._retry_after(
            keys=[self.prefix + key],
            args=[self._clock(), self.window_ms],
        )
        return int(wait)

    async def reset(self, key: Optional[str] = None) -> None:
        if key is not None:
            await self.redis.delete(self.prefix + key)
            return
        async for stored in self.redis.scan_iter(match=f"{self.prefix}*"):
            await self.redis.delete(stored)
