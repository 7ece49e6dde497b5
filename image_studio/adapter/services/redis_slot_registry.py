"""Redis-backed slot registry for the admission queue

Bounds concurrency across every instance of the service. Slots live in a
sorted set scored by expiry time, so slots of a crashed instance free
themselves after `slot_ttl_seconds`; the owning token of each slot lives
in a hash so only the holder can release it.
"""

import time
import redis.asyncio as aioredis
from image_studio.app.services.admission_queue import AcquireOutcome, SlotRegistry

ACQUIRE_SCRIPT = """
local slots = KEYS[1]
local tokens = KEYS[2]
local now = tonumber(ARGV[4])
local expired = redis.call('ZRANGEBYSCORE', slots, '-inf', now)
for _, id in ipairs(expired) do
    redis.call('HDEL', tokens, id)
end
redis.call('ZREMRANGEBYSCORE', slots, '-inf', now)
if redis.call('ZSCORE', slots, ARGV[1]) then
    return 2
end
if redis.call('ZCARD', slots) >= tonumber(ARGV[3]) then
    return 0
end
redis.call('ZADD', slots, tonumber(ARGV[5]), ARGV[1])
redis.call('HSET', tokens, ARGV[1], ARGV[2])
return 1
"""

RELEASE_SCRIPT = """
if redis.call('HGET', KEYS[2], ARGV[1]) == ARGV[2] then
    redis.call('HDEL', KEYS[2], ARGV[1])
    redis.call('ZREM', KEYS[1], ARGV[1])
    return 1
end
return 0
"""

OUTCOMES = {
    0: AcquireOutcome.FULL,
    1: AcquireOutcome.ACQUIRED,
    2: AcquireOutcome.DUPLICATE,
}


class RedisSlotRegistry(SlotRegistry):

    def __init__(
        self,
        redis: aioredis.Redis,
        prefix: str = "image_studio:queue:",
        slot_ttl_seconds: int = 900,
    ):
        self.redis = redis
        self.slots_key = f"{prefix}slots"
        self.tokens_key = f"{prefix}tokens"
        self.slot_ttl_ms = slot_ttl_seconds * 1000
        self._acquire = redis.register_script(ACQUIRE_SCRIPT)
        self._release = redis.register_script(RELEASE_SCRIPT)

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def acquire(self, generation_id: str, token: str, capacity: int) -> AcquireOutcome:
        now = self._now_ms()
        outcome = await self._acquire(
            keys=[self.slots_key, self.tokens_key],
            args=[generation_id, token, capacity, now, now + self.slot_ttl_ms],
        )
        return OUTCOMES[int(outcome)]

    async def release(self, generation_id: str, token: str) -> bool:
        released = await self._release(
            keys=[self.slots_key, self.tokens_key],
            args=[generation_id, token],
        )
        return int(released) == 1

    async def contains(self, generation_id: str) -> bool:
        expires_at = await self.redis.zscore(self.slots_key, generation_id)
        return expires_at is not None and expires_at > self._now_ms()

    async def count(self) -> int:
        return int(await self.redis.zcount(self.slots_key, f"({self._now_ms()}", "+inf"))
