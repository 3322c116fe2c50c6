"""Redis-backed key-value store shared by the auth components.

The client handle is created once by the application lifespan and passed to
every component that needs it. Multi-step operations that must not interleave
with concurrent requests (compare-and-delete, increment-with-expiry) run as
Lua scripts so redis executes them atomically.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Delete KEYS[1] only if it currently holds ARGV[1]. Returns 1 when deleted.
_COMPARE_AND_DELETE = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

# Increment KEYS[1], setting its expiry on the first increment of a window.
# Returns {count, pttl_ms}.
_INCREMENT_WITH_TTL = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
return {count, redis.call('PTTL', KEYS[1])}
"""


def create_redis_client(url: str) -> redis.Redis:
    """Create an asyncio redis client that returns str values."""
    return redis.from_url(url, decode_responses=True)


class CacheStore:
    """Thin async wrapper around a redis client.

    Errors from redis propagate as ``RedisError``; callers decide whether a
    given path fails open or closed.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @property
    def client(self) -> redis.Redis:
        return self._client

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store a value, optionally expiring after ``ttl`` seconds."""
        if ttl is not None:
            await self._client.set(key, value, ex=ttl)
        else:
            await self._client.set(key, value)

    async def delete(self, key: str) -> int:
        return int(await self._client.delete(key))

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(key))

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-1 no expiry, -2 missing)."""
        return int(await self._client.ttl(key))

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        """Atomically delete ``key`` if it holds ``expected``."""
        result = await self._client.eval(_COMPARE_AND_DELETE, 1, key, expected)
        return int(result) == 1

    async def get_and_delete(self, key: str) -> str | None:
        """Atomically read and remove a value."""
        return await self._client.getdel(key)

    async def increment(self, key: str, ttl: int) -> tuple[int, int]:
        """Increment a counter, expiring it ``ttl`` seconds after creation.

        Returns:
            Tuple of (count, remaining milliseconds until expiry)
        """
        count, pttl = await self._client.eval(_INCREMENT_WITH_TTL, 1, key, str(ttl))
        return int(count), int(pttl)

    async def push_capped(self, key: str, value: str, max_length: int, ttl: int) -> None:
        """Prepend ``value`` to a list, trim it to ``max_length`` and reset its expiry."""
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.lpush(key, value)
            pipe.ltrim(key, 0, max_length - 1)
            pipe.expire(key, ttl)
            await pipe.execute()

    async def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        return list(await self._client.lrange(key, start, end))

    async def ping(self) -> bool:
        """Check if redis is reachable."""
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.debug(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
