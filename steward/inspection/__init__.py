"""Inspection domain: records, conditions and workflow errors."""

from steward.inspection.enums import (
    Condition,
    ItemStatus,
    MediaType,
    WorkOrderStatus,
)
from steward.inspection.errors import (
    GuardViolation,
    ParseFailure,
    ValidationFailure,
    WorkflowError,
)
from steward.inspection.models import (
    ChecklistItem,
    ChecklistLocation,
    ChecklistTask,
    ChecklistTaskFinding,
    FindingDetails,
    Inspector,
    ItemEntry,
    ItemEntryMedia,
    WorkOrder,
)

__all__ = [
    # Enums
    "Condition",
    "ItemStatus",
    "MediaType",
    "WorkOrderStatus",
    # Errors
    "GuardViolation",
    "ParseFailure",
    "ValidationFailure",
    "WorkflowError",
    # Records
    "ChecklistItem",
    "ChecklistLocation",
    "ChecklistTask",
    "ChecklistTaskFinding",
    "FindingDetails",
    "Inspector",
    "ItemEntry",
    "ItemEntryMedia",
    "WorkOrder",
]
