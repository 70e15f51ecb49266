"""Tool execution context.

Bundles what a handler needs for one turn: the working copy of the
session and the collaborators that act on it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from steward.cache.base import Cache
from steward.config.models.workflow import WorkflowConfig
from steward.conversation.models import ConversationSession
from steward.inspection.coordinator import DeferredWriteCoordinator
from steward.inspection.errors import GuardViolation, ValidationFailure
from steward.inspection.machine import NO_ACTIVE_RUN, PhaseStateMachine
from steward.inspection.media import MediaUploader
from steward.inspection.repository import InspectionRepository
from steward.observability.side_effects import non_critical


@dataclass
class ToolContext:
    """Context passed to every tool handler.

    `session` is a deep copy owned by the dispatcher; handlers mutate it
    freely and the dispatcher decides whether the changes are kept.
    """

    session: ConversationSession
    repository: InspectionRepository
    coordinator: DeferredWriteCoordinator
    machine: PhaseStateMachine
    uploader: MediaUploader
    cache: Cache
    workflow: WorkflowConfig
    now: datetime

    async def invalidate(self, *keys: str) -> None:
        """Drop cached listings; failures are logged and ignored."""
        for key in keys:
            await non_critical("cache_invalidate", self.cache.invalidate_prefix(key), key=key)

    def run_pair(self, args: dict[str, Any]) -> tuple[str, str]:
        """Resolve the `(item_id, sub_location_id)` of the active sub-location run.

        Ids passed by the caller must name the run in progress.
        """
        self.machine.require_job_started(self.session)
        item_id = self.session.current_location_id
        sub_location_id = self.session.current_sub_location_id
        if item_id is None or sub_location_id is None or self.session.in_task_flow:
            raise GuardViolation(NO_ACTIVE_RUN)
        requested_item = args.get("contractChecklistItemId")
        requested_sub = args.get("subLocationId")
        if (requested_item and requested_item != item_id) or (
            requested_sub and requested_sub != sub_location_id
        ):
            raise GuardViolation(
                "That sub-location isn't the one in progress. "
                "Please pick it from the sub-location menu first."
            )
        return item_id, sub_location_id


def text_arg(args: dict[str, Any], *names: str) -> str:
    """First non-blank string among `names`, stripped, or an empty string."""
    for name in names:
        value = args.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def require_text(args: dict[str, Any], name: str, message: str) -> str:
    value = text_arg(args, name)
    if not value:
        raise ValidationFailure(message)
    return value


def jobs_cache_key(inspector_id: str) -> str:
    return f"jobs:{inspector_id}"


def locations_cache_key(work_order_id: str) -> str:
    return f"locations:{work_order_id}"
