"""SessionStore abstract interface."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from steward.conversation.models import ConversationSession
from steward.conversation.models.session import utc_now


class SessionStore(ABC):
    """Abstract interface for conversation session storage.

    Sessions are TTL-bounded and never deleted explicitly; every `merge`
    refreshes the TTL. Writes are read-merge-write on one record, so callers
    serialize turns per conversation (see `SessionMutex`).
    """

    @abstractmethod
    async def get(self, conversation_id: str) -> ConversationSession | None:
        """Get a live session, or None if absent or expired."""
        pass

    @abstractmethod
    async def merge(
        self, conversation_id: str, partial: Mapping[str, Any]
    ) -> ConversationSession:
        """Overlay `partial` onto the stored session, creating it if needed."""
        pass


def apply_partial(
    conversation_id: str,
    current: ConversationSession | None,
    partial: Mapping[str, Any],
) -> ConversationSession:
    """Build the merged session for a `merge` call.

    Unknown keys are rejected; the result is fully re-validated.
    """
    unknown = set(partial) - set(ConversationSession.model_fields)
    if unknown:
        raise KeyError(f"Unknown session fields: {sorted(unknown)}")

    base = (
        current.model_dump()
        if current is not None
        else {"conversation_id": conversation_id}
    )
    merged = {**base, **partial, "conversation_id": conversation_id}
    merged["last_updated_at"] = utc_now()
    return ConversationSession.model_validate(merged)
