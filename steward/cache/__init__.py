"""Listing cache with TTL and bounded size."""

from steward.cache.base import Cache
from steward.cache.inmemory import InMemoryCache
from steward.cache.redis import RedisCache

__all__ = ["Cache", "InMemoryCache", "RedisCache"]
