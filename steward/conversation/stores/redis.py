"""Redis implementation of SessionStore.

Sessions are stored as JSON under `{prefix}:{conversation_id}` with a TTL
that every merge resets.
"""

from collections.abc import Mapping
from typing import Any

import redis.asyncio as redis
from pydantic import ValidationError

from steward.config.models.storage import SessionStoreConfig
from steward.conversation.models import ConversationSession
from steward.conversation.store import SessionStore, apply_partial
from steward.db.errors import ConnectionError, SerializationError
from steward.observability.logging import get_logger

logger = get_logger(__name__)


class RedisSessionStore(SessionStore):
    """Redis-backed SessionStore."""

    def __init__(
        self,
        client: redis.Redis,
        config: SessionStoreConfig | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            client: Redis client instance
            config: Session store configuration (uses defaults if not provided)
        """
        self._client = client
        self._config = config or SessionStoreConfig()
        self._prefix = self._config.key_prefix

    def _key(self, conversation_id: str) -> str:
        return f"{self._prefix}:{conversation_id}"

    async def get(self, conversation_id: str) -> ConversationSession | None:
        try:
            data = await self._client.get(self._key(conversation_id))
        except redis.RedisError as e:
            logger.error(
                "redis_session_get_error",
                conversation_id=conversation_id,
                error=str(e),
            )
            raise ConnectionError(f"Failed to get session: {e}", cause=e) from e

        if not data:
            return None
        try:
            return ConversationSession.model_validate_json(data)
        except ValidationError as e:
            raise SerializationError(
                f"Stored session is not valid: {conversation_id}", cause=e
            ) from e

    async def merge(
        self, conversation_id: str, partial: Mapping[str, Any]
    ) -> ConversationSession:
        current = await self.get(conversation_id)
        session = apply_partial(conversation_id, current, partial)
        try:
            await self._client.set(
                self._key(conversation_id),
                session.model_dump_json(),
                ex=self._config.ttl_seconds,
            )
        except redis.RedisError as e:
            logger.error(
                "redis_session_merge_error",
                conversation_id=conversation_id,
                error=str(e),
            )
            raise ConnectionError(f"Failed to save session: {e}", cause=e) from e

        logger.debug(
            "session_merged",
            conversation_id=conversation_id,
            fields=sorted(partial),
        )
        return session
