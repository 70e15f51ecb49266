"""Conversation domain models."""

from steward.conversation.models.enums import JobStatus, MenuKind, TaskFlowStage
from steward.conversation.models.session import (
    ConversationSession,
    PendingConditionSet,
    PendingMedia,
    PendingTaskCondition,
)

__all__ = [
    # Enums
    "JobStatus",
    "MenuKind",
    "TaskFlowStage",
    # Session models
    "ConversationSession",
    "PendingConditionSet",
    "PendingMedia",
    "PendingTaskCondition",
]
