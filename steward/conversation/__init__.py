"""Conversation state: session model, stores and turn serialization."""

from steward.conversation.models import (
    ConversationSession,
    JobStatus,
    MenuKind,
    TaskFlowStage,
)
from steward.conversation.mutex import (
    InMemorySessionMutex,
    RedisSessionMutex,
    SessionMutex,
)
from steward.conversation.store import SessionStore

__all__ = [
    "ConversationSession",
    "InMemorySessionMutex",
    "JobStatus",
    "MenuKind",
    "RedisSessionMutex",
    "SessionMutex",
    "SessionStore",
    "TaskFlowStage",
]
