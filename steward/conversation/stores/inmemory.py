"""In-memory implementation of SessionStore."""

import time
from collections.abc import Callable, Mapping
from typing import Any

from steward.conversation.models import ConversationSession
from steward.conversation.store import SessionStore, apply_partial


class InMemorySessionStore(SessionStore):
    """In-memory SessionStore for testing and development.

    Expiry is checked lazily on read against a monotonic clock.
    Not suitable for multi-process deployments.
    """

    def __init__(
        self,
        ttl_seconds: int = 86400,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[ConversationSession, float]] = {}

    async def get(self, conversation_id: str) -> ConversationSession | None:
        record = self._sessions.get(conversation_id)
        if record is None:
            return None
        session, expires_at = record
        if expires_at <= self._clock():
            del self._sessions[conversation_id]
            return None
        return session.model_copy(deep=True)

    async def merge(
        self, conversation_id: str, partial: Mapping[str, Any]
    ) -> ConversationSession:
        current = await self.get(conversation_id)
        session = apply_partial(conversation_id, current, partial)
        self._sessions[conversation_id] = (session, self._clock() + self._ttl)
        return session.model_copy(deep=True)
