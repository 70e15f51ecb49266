"""Domain records for property inspections.

These mirror the rows the data-access layer returns. The core never builds
queries; it reads and writes whole records through `InspectionRepository`.
"""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from steward.inspection.enums import (
    Condition,
    ItemStatus,
    MediaType,
    WorkOrderStatus,
)


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate an opaque record identifier."""
    return uuid4().hex


class Inspector(BaseModel):
    """Field inspector who carries out jobs."""

    id: str = Field(default_factory=new_id)
    name: str
    phone: str | None = None
    active: bool = True


class WorkOrder(BaseModel):
    """A scheduled inspection job at one property."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    inspector_id: str
    customer_name: str
    property_address: str
    scheduled_start: datetime
    status: WorkOrderStatus = WorkOrderStatus.SCHEDULED
    started_at: datetime | None = None


class ChecklistItem(BaseModel):
    """Location: a top-level inspectable area of the property."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    work_order_id: str
    name: str
    status: ItemStatus = ItemStatus.PENDING
    order: int = 0
    completed_at: datetime | None = None
    completed_by: str | None = None


class ChecklistLocation(BaseModel):
    """Sub-location: an optional finer-grained area grouping tasks."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    item_id: str
    name: str
    status: ItemStatus = ItemStatus.PENDING
    order: int = 0


class ChecklistTask(BaseModel):
    """Smallest inspectable unit; carries exactly one condition rating."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    item_id: str
    location_id: str | None = None
    name: str
    condition: Condition | None = None
    status: ItemStatus = ItemStatus.PENDING
    order: int = 0
    inspector_id: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)


class ItemEntry(BaseModel):
    """Inspection record for one pass over a task or sub-location run."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    item_id: str
    inspector_id: str | None = None
    location_id: str | None = None
    task_id: str | None = None
    condition: Condition | None = None
    remarks: str | None = None
    cause: str | None = None
    resolution: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class ItemEntryMedia(BaseModel):
    """A photo or video attached to an inspection record."""

    id: str = Field(default_factory=new_id)
    entry_id: str
    url: str
    media_type: MediaType = MediaType.PHOTO
    caption: str | None = None
    order: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class FindingDetails(BaseModel):
    """Per-task detail captured during an inspection pass."""

    condition: Condition | None = None
    cause: str | None = None
    resolution: str | None = None

    def merge(self, other: "FindingDetails") -> "FindingDetails":
        """Overlay `other` onto this record.

        Fields left unset on `other` never erase a value already captured,
        so a cause recorded before a condition update survives it.
        """
        return FindingDetails(
            condition=other.condition if other.condition is not None else self.condition,
            cause=other.cause if other.cause else self.cause,
            resolution=other.resolution if other.resolution else self.resolution,
        )

    @property
    def has_cause_and_resolution(self) -> bool:
        return bool(self.cause and self.cause.strip()) and bool(
            self.resolution and self.resolution.strip()
        )


class ChecklistTaskFinding(BaseModel):
    """Finding for one task on one inspection record, unique per pair."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    entry_id: str
    task_id: str
    details: FindingDetails = Field(default_factory=FindingDetails)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
