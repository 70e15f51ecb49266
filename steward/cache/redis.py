"""Redis implementation of Cache."""

import json
from typing import Any

import redis.asyncio as redis

from steward.cache.base import Cache
from steward.config.models.storage import CacheConfig
from steward.db.errors import ConnectionError
from steward.observability.logging import get_logger

logger = get_logger(__name__)


class RedisCache(Cache):
    """Redis-backed Cache.

    Key format: {prefix}:{key}
    Values are stored as JSON with a Redis expiry; eviction beyond that is
    left to the server's maxmemory policy.
    """

    def __init__(self, client: redis.Redis, config: CacheConfig | None = None) -> None:
        self._client = client
        self._config = config or CacheConfig()

    def _key(self, key: str) -> str:
        return f"{self._config.key_prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self._key(key))
        except redis.RedisError as e:
            raise ConnectionError(f"Failed to read cache: {e}", cause=e) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Corrupted value, treat as a miss
            logger.warning("cache_corrupted_value", key=key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._config.ttl_seconds
        try:
            await self._client.set(self._key(key), json.dumps(value), ex=ttl)
        except redis.RedisError as e:
            raise ConnectionError(f"Failed to write cache: {e}", cause=e) from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except redis.RedisError as e:
            raise ConnectionError(f"Failed to delete cache key: {e}", cause=e) from e

    async def invalidate_prefix(self, prefix: str) -> int:
        removed = 0
        try:
            async for redis_key in self._client.scan_iter(match=f"{self._key(prefix)}*"):
                removed += await self._client.delete(redis_key)
        except redis.RedisError as e:
            raise ConnectionError(f"Failed to invalidate cache: {e}", cause=e) from e
        logger.debug("cache_prefix_invalidated", prefix=prefix, removed=removed)
        return removed
