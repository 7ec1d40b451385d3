"""
Cache stores for IPCheck

The coordinator talks to a CacheStore; RedisCacheStore is the shared
backend for multi-process deployments, MemoryCacheStore serves a single
process.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from ipcheck.core.exceptions import CacheError

logger = logging.getLogger(__name__)

# Delete the key only while it still holds our token
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

class CacheStore(ABC):
    """Key/value store with TTLs and an atomic set-if-absent"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get a value

        Returns:
            Stored string, or None if absent or expired

        Raises:
            CacheError: If the backend is unreachable
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store a value that expires after ttl seconds"""
        pass

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """
        Atomically store a value only if the key does not exist

        Returns:
            True if the value was stored
        """
        pass

    @abstractmethod
    async def delete(self, key: str, expected: Optional[str] = None) -> None:
        """
        Delete a key

        Args:
            key: Key to delete
            expected: If given, delete only while the key still holds this value
        """
        pass

    async def close(self) -> None:
        """Release backend connections"""
        pass


class RedisCacheStore(CacheStore):
    """CacheStore backed by a shared Redis server"""

    def __init__(self, url: str, client=None):
        """
        Initialize the Redis store

        Args:
            url: Redis connection URL
            client: Pre-built redis.asyncio client (optional)
        """
        self.url = url
        self._client = client or redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=2,
            socket_connect_timeout=2,
        )

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis get failed for {key}: {e}")

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis set failed for {key}: {e}")

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        try:
            return bool(await self._client.set(key, value, nx=True, ex=ttl))
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis set-if-absent failed for {key}: {e}")

    async def delete(self, key: str, expected: Optional[str] = None) -> None:
        try:
            if expected is None:
                await self._client.delete(key)
            else:
                await self._client.eval(_RELEASE_SCRIPT, 1, key, expected)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis delete failed for {key}: {e}")

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing Redis connection: {e}")


class MemoryCacheStore(CacheStore):
    """
    Process-local CacheStore

    Only coordinates callers inside one process; use Redis when several
    processes share lookups.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    def _sweep(self) -> None:
        now = self._clock()
        for key in [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]:
            del self._entries[key]

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._sweep()
        self._entries[key] = (value, self._clock() + ttl)

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        # No await between check and write, so this is atomic on the event loop
        if self._live(key) is not None:
            return False
        self._entries[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: str, expected: Optional[str] = None) -> None:
        if expected is not None and self._live(key) != expected:
            return
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry"""
        self._entries.clear()


def create_cache_store(backend: str, url: Optional[str] = None) -> CacheStore:
    """
    Factory function to create a cache store

    Args:
        backend: "redis" or "memory"
        url: Redis connection URL (redis backend only)

    Returns:
        CacheStore instance

    Raises:
        CacheError: If the backend is unknown
    """
    if backend == "redis":
        return RedisCacheStore(url or "redis://localhost:6379/0")
    if backend == "memory":
        return MemoryCacheStore()
    raise CacheError(f"Unknown cache backend: {backend}")
