"""Session store implementations."""

from steward.conversation.stores.inmemory import InMemorySessionStore
from steward.conversation.stores.redis import RedisSessionStore

__all__ = ["InMemorySessionStore", "RedisSessionStore"]
