"""Redis implementation of KeyValueStore.

Thin asyncio wrapper around redis-py. It adds no retries or caching of its
own: errors from the client propagate to the caller, which decides whether
the operation is allowed to fail.
"""

import redis.asyncio as redis

from intent_gateway.config import get_redis_client


class RedisKeyValueStore:
    """Redis implementation of the KeyValueStore protocol.

    This class satisfies the KeyValueStore protocol through structural
    typing - no explicit inheritance needed. The client must be created with
    ``decode_responses=True``.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        """Initialize the store.

        Args:
            redis_client: Async Redis client. If None, creates default.
        """
        self._client = redis_client or get_redis_client()

    @classmethod
    def create(cls) -> "RedisKeyValueStore":
        """Factory method to create a store from settings."""
        return cls()

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        nx: bool = False,
        xx: bool = False,
        keep_ttl: bool = False,
    ) -> bool:
        result = await self._client.set(key, value, ex=ttl, nx=nx, xx=xx, keepttl=keep_ttl)
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._client.delete(*keys)

    async def exists(self, key: str) -> int:
        return await self._client.exists(key)

    async def ttl(self, key: str) -> int:
        return await self._client.ttl(key)

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._client.expire(key, seconds))

    async def hgetall(self, key: str) -> dict[str, str]:
        return await self._client.hgetall(key)

    async def hset(self, key: str, field: str, value: str) -> int:
        return await self._client.hset(key, field, value)

    async def hdel(self, key: str, *fields: str) -> int:
        if not fields:
            return 0
        return await self._client.hdel(key, *fields)

    async def rpush(self, key: str, *values: str) -> int:
        return await self._client.rpush(key, *values)

    async def lrange(self, key: str, start: int, stop: int) -> list[str]:
        return await self._client.lrange(key, start, stop)

    async def ltrim(self, key: str, start: int, stop: int) -> bool:
        return bool(await self._client.ltrim(key, start, stop))

    async def xadd(self, key: str, fields: dict[str, str], maxlen: int | None = None) -> str:
        return await self._client.xadd(key, fields, maxlen=maxlen, approximate=False)

    async def xrange(
        self, key: str, start: str = "-", end: str = "+", count: int | None = None
    ) -> list[tuple[str, dict[str, str]]]:
        entries = await self._client.xrange(key, min=start, max=end, count=count)
        return [(entry_id, dict(fields)) for entry_id, fields in entries]

    async def publish(self, channel: str, message: str) -> int:
        return await self._client.publish(channel, message)

    async def keys(self, pattern: str) -> list[str]:
        return [key async for key in self._client.scan_iter(match=pattern)]

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
