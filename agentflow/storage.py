"""Key-value store injected into caches (in-memory or Redis)."""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis


logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Async JSON key-value store with optional per-key TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clear_pattern(self, pattern: str) -> int:
        ...

    async def close(self) -> None:
        return None


class InMemoryStore(KeyValueStore):
    """Process-local store. Values are JSON round-tripped like the Redis store."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (json.dumps(value), expires_at)
        return True

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def clear_pattern(self, pattern: str) -> int:
        """Delete keys matching a ``prefix*`` pattern."""
        prefix = pattern.rstrip("*")
        keys = [k for k in self._data if k.startswith(prefix)]
        for key in keys:
            del self._data[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._data)


class RedisStore(KeyValueStore):
    """Async Redis store. Failures are logged and treated as cache misses."""

    def __init__(self, url: str, client: Optional[Any] = None):
        self.url = url
        self.redis = client or redis.from_url(url, decode_responses=True, encoding="utf-8")

    async def ping(self) -> bool:
        try:
            await self.redis.ping()
            logger.info(f"Connected to Redis at {self.url}")
            return True
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}")
            return False

    async def close(self) -> None:
        await self.redis.aclose()
        logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.error(f"Store get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            await self.redis.set(key, json.dumps(value), ex=ttl)
            return True
        except Exception as e:
            logger.error(f"Store set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(key))
        except Exception as e:
            logger.error(f"Store delete error for key {key}: {e}")
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis glob pattern (e.g. "llm:*")

        Returns:
            Number of keys deleted
        """
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern)]
            if keys:
                return await self.redis.delete(*keys)
            return 0
        except Exception as e:
            logger.error(f"Store clear error for pattern {pattern}: {e}")
            return 0


def create_store(url: Optional[str] = None) -> KeyValueStore:
    """Redis store when a URL is given, in-memory otherwise."""
    if url:
        return RedisStore(url)
    logger.info("REDIS_URL not set, using in-memory store")
    return InMemoryStore()
