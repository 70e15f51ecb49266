"""Conversation session model."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from steward.conversation.models.enums import JobStatus, MenuKind, TaskFlowStage
from steward.inspection.enums import Condition, MediaType
from steward.inspection.models import FindingDetails


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class PendingTaskCondition(BaseModel):
    """One buffered condition assignment."""

    task_id: str
    condition: Condition


class PendingConditionSet(BaseModel):
    """Buffered conditions for one sub-location run.

    At most one set exists per `(item_id, sub_location_id)`; buffering again
    replaces the earlier set.
    """

    item_id: str
    sub_location_id: str | None = None
    tasks: list[PendingTaskCondition] = Field(default_factory=list)

    def matches(self, item_id: str, sub_location_id: str | None) -> bool:
        return self.item_id == item_id and self.sub_location_id == sub_location_id


class PendingMedia(BaseModel):
    """Uploaded media awaiting attachment to an inspection record."""

    url: str
    key: str | None = Field(default=None, description="Object storage key, if uploaded by us")
    media_type: MediaType = MediaType.PHOTO
    caption: str | None = None
    task_id: str | None = None
    task_item_id: str
    sub_location_id: str | None = None

    def matches(self, item_id: str, sub_location_id: str | None) -> bool:
        return self.task_item_id == item_id and self.sub_location_id == sub_location_id


class ConversationSession(BaseModel):
    """Per-conversation workflow state.

    Keyed by conversation identity (the inspector's messaging address) and
    kept alive by TTL; every write refreshes it. Navigation fields describe
    where the inspector is; scratch fields hold the value being collected
    for the active task or sub-location run; pending buffers hold deferred
    writes not yet committed to the repository.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    conversation_id: str = Field(..., description="Conversation identity")

    # Identity
    inspector_id: str | None = Field(default=None, description="Authenticated inspector")
    inspector_name: str | None = None
    inspector_phone: str | None = None

    # Job
    work_order_id: str | None = Field(default=None, description="Job in progress")
    job_status: JobStatus = Field(default=JobStatus.NONE)
    last_menu: MenuKind | None = Field(
        default=None, description="Menu a bare numeric reply refers to"
    )
    last_menu_options: list[str] = Field(
        default_factory=list, description="Record ids in the order the menu listed them"
    )

    # Navigation
    current_location_id: str | None = None
    current_sub_location_id: str | None = None
    current_task_id: str | None = None
    current_task_item_id: str | None = None

    # Active run
    current_task_condition: Condition | None = None
    task_flow_stage: TaskFlowStage | None = None
    current_task_entry_id: str | None = Field(
        default=None, description="Inspection record being built, once persisted"
    )
    pending_task_cause: str | None = None
    pending_task_resolution: str | None = None
    pending_task_remarks: str | None = None

    # Deferred writes
    pending_conditions: list[PendingConditionSet] = Field(default_factory=list)
    pending_findings: dict[str, FindingDetails] = Field(
        default_factory=dict, description="task_id -> buffered finding detail"
    )
    pending_media_uploads: list[PendingMedia] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    last_updated_at: datetime = Field(default_factory=utc_now)

    @property
    def in_task_flow(self) -> bool:
        return self.current_task_id is not None

    @property
    def active_stage(self) -> TaskFlowStage | None:
        """Stage, or None when the job/task context it depends on is gone."""
        if self.work_order_id is None:
            return None
        if self.current_task_id is None and self.current_sub_location_id is None:
            return None
        return self.task_flow_stage
