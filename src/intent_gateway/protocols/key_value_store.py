"""Key-value store protocol.

Defines the subset of store operations the gateway consumes. Every method
is a coroutine, so each store call is a suspension point; the operations are
atomic per call but never composed into multi-key transactions.

Implementations can include:
- Redis via redis.asyncio (default)
- An in-memory double for tests
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for the shared key-value store.

    TTL semantics follow Redis: ``ttl`` returns -2 for a missing key and
    -1 for a key without expiry.
    """

    async def get(self, key: str) -> str | None:
        """Get a string value, or None if the key does not exist."""
        ...

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        nx: bool = False,
        xx: bool = False,
        keep_ttl: bool = False,
    ) -> bool:
        """Set a string value.

        Args:
            key: The key to write
            value: The string value
            ttl: Optional expiry in seconds
            nx: Only write if the key does not exist yet
            xx: Only write if the key already exists
            keep_ttl: Keep the key's current expiry

        Returns:
            True if the value was written, False if ``nx``/``xx`` prevented it
        """
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""
        ...

    async def exists(self, key: str) -> int:
        """Return 1 if the key exists, 0 otherwise."""
        ...

    async def ttl(self, key: str) -> int:
        """Return the remaining time-to-live of a key in seconds."""
        ...

    async def expire(self, key: str, seconds: int) -> bool:
        """Set a key's expiry. Returns False if the key does not exist."""
        ...

    async def hgetall(self, key: str) -> dict[str, str]:
        """Return all fields of a hash (empty dict if missing)."""
        ...

    async def hset(self, key: str, field: str, value: str) -> int:
        """Set a hash field."""
        ...

    async def hdel(self, key: str, *fields: str) -> int:
        """Delete hash fields and return how many existed."""
        ...

    async def rpush(self, key: str, *values: str) -> int:
        """Append values to a list and return its new length."""
        ...

    async def lrange(self, key: str, start: int, stop: int) -> list[str]:
        """Return a list slice (inclusive stop, negative indexes allowed)."""
        ...

    async def ltrim(self, key: str, start: int, stop: int) -> bool:
        """Trim a list to the given inclusive range."""
        ...

    async def xadd(self, key: str, fields: dict[str, str], maxlen: int | None = None) -> str:
        """Append an entry to a stream, trimming it to ``maxlen`` entries."""
        ...

    async def xrange(
        self, key: str, start: str = "-", end: str = "+", count: int | None = None
    ) -> list[tuple[str, dict[str, str]]]:
        """Read stream entries as (entry id, fields) tuples."""
        ...

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message and return the number of receivers."""
        ...

    async def keys(self, pattern: str) -> list[str]:
        """Enumerate keys matching a glob-style pattern."""
        ...

    async def ping(self) -> bool:
        """Check that the store is reachable."""
        ...
