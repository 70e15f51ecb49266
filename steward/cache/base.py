"""Cache abstract interface."""

from abc import ABC, abstractmethod
from typing import Any


class Cache(ABC):
    """Key/value cache for listings that are expensive to rebuild.

    Values must be JSON-serializable. A miss and an expired entry look the
    same to callers. Invalidation is a non-critical side effect: callers
    wrap it in `non_critical` and carry on if it fails.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value; `ttl_seconds` overrides the configured default."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with `prefix` and return how many went."""
        pass
