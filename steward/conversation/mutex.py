"""Per-conversation turn serialization.

Two messages from the same inspector arriving close together would
otherwise race on the session's read-merge-write. The dispatcher holds the
mutex for the conversation identity for the whole turn.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from redis.asyncio import Redis
from redis.exceptions import LockError

from steward.observability.logging import get_logger

logger = get_logger(__name__)


class SessionMutex(ABC):
    """Mutual exclusion keyed by conversation identity."""

    @abstractmethod
    def acquire(
        self,
        conversation_id: str,
        blocking_timeout: float | None = None,
    ) -> AbstractAsyncContextManager[bool]:
        """Acquire the lock; yields True if acquired, False on timeout.

        Usage:
            async with mutex.acquire(conversation_id) as acquired:
                if acquired:
                    ...
        """
        pass

    @abstractmethod
    async def is_locked(self, conversation_id: str) -> bool:
        """Check whether a turn is in progress for the conversation."""
        pass


class InMemorySessionMutex(SessionMutex):
    """Process-local mutex built on one `asyncio.Lock` per conversation.

    Locks are reference counted and dropped once no turn holds or waits
    for them, so idle conversations leave nothing behind.
    """

    def __init__(self, blocking_timeout: float = 10.0) -> None:
        self._blocking_timeout = blocking_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def acquire(
        self,
        conversation_id: str,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[bool, None]:
        timeout = blocking_timeout or self._blocking_timeout
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1

        acquired = False
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
                acquired = True
            except TimeoutError:
                logger.warning(
                    "session_lock_timeout",
                    conversation_id=conversation_id,
                    timeout=timeout,
                )
            yield acquired
        finally:
            if acquired:
                lock.release()
            self._users[conversation_id] -= 1
            if self._users[conversation_id] == 0:
                del self._users[conversation_id]
                del self._locks[conversation_id]

    async def is_locked(self, conversation_id: str) -> bool:
        lock = self._locks.get(conversation_id)
        return lock is not None and lock.locked()


class RedisSessionMutex(SessionMutex):
    """Redis-backed distributed lock for multi-replica deployments.

    Lock key format: {prefix}:lock:{conversation_id}
    """

    def __init__(
        self,
        redis: Redis,
        lock_timeout: float = 60.0,
        blocking_timeout: float = 10.0,
        key_prefix: str = "steward:session",
    ) -> None:
        """Initialize session mutex.

        Args:
            redis: Redis client instance
            lock_timeout: How long lock is held before auto-release (seconds)
            blocking_timeout: How long to wait when trying to acquire (seconds)
            key_prefix: Namespace shared with the session store
        """
        self._redis = redis
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout
        self._prefix = key_prefix

    def _key(self, conversation_id: str) -> str:
        return f"{self._prefix}:lock:{conversation_id}"

    @asynccontextmanager
    async def acquire(
        self,
        conversation_id: str,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[bool, None]:
        timeout = blocking_timeout or self._blocking_timeout

        lock = self._redis.lock(
            self._key(conversation_id),
            timeout=self._lock_timeout,
            blocking_timeout=timeout,
        )

        acquired = await lock.acquire()
        if not acquired:
            logger.warning(
                "session_lock_timeout",
                conversation_id=conversation_id,
                timeout=timeout,
            )
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError:
                    # Expired under us after lock_timeout; nothing to release.
                    logger.warning(
                        "session_lock_expired_before_release",
                        conversation_id=conversation_id,
                    )

    async def is_locked(self, conversation_id: str) -> bool:
        return await self._redis.exists(self._key(conversation_id)) > 0
