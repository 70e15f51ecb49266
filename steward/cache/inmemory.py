"""In-memory implementation of Cache."""

import copy
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from steward.cache.base import Cache


class InMemoryCache(Cache):
    """Bounded in-process cache with TTL and LRU eviction.

    Expiry is checked lazily on read; inserting beyond `max_entries` evicts
    the least recently used key. Not shared across processes.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, float]] = OrderedDict()

    async def get(self, key: str) -> Any | None:
        record = self._entries.get(key)
        if record is None:
            return None
        value, expires_at = record
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl
        self._entries[key] = (copy.deepcopy(value), self._clock() + ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def invalidate_prefix(self, prefix: str) -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)
