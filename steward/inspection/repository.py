"""InspectionRepository abstract interface.

The relational data-access layer lives outside this package. The workflow
only needs fetch-by-id, fetch-by-parent, count-by-status and whole-record
writes, which is what this interface offers.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

from steward.inspection.enums import ItemStatus
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


class InspectionRepository(ABC):
    """Abstract interface for inspection records."""

    # Inspectors and jobs

    @abstractmethod
    async def get_inspector(self, inspector_id: str) -> Inspector | None:
        pass

    @abstractmethod
    async def find_inspectors(
        self,
        *,
        name: str | None = None,
        phones: Sequence[str] = (),
    ) -> list[Inspector]:
        """Active inspectors matching a case-insensitive name and/or any phone."""
        pass

    @abstractmethod
    async def get_work_order(self, work_order_id: str) -> WorkOrder | None:
        pass

    @abstractmethod
    async def list_work_orders(self, inspector_id: str, day: date) -> list[WorkOrder]:
        """Jobs assigned to the inspector scheduled on `day`, by start time."""
        pass

    @abstractmethod
    async def update_work_order(self, work_order: WorkOrder) -> WorkOrder:
        pass

    # Checklist hierarchy

    @abstractmethod
    async def get_item(self, item_id: str) -> ChecklistItem | None:
        pass

    @abstractmethod
    async def list_items(self, work_order_id: str) -> list[ChecklistItem]:
        pass

    @abstractmethod
    async def update_item(self, item: ChecklistItem) -> ChecklistItem:
        pass

    @abstractmethod
    async def get_sub_location(self, location_id: str) -> ChecklistLocation | None:
        pass

    @abstractmethod
    async def list_sub_locations(self, item_id: str) -> list[ChecklistLocation]:
        pass

    @abstractmethod
    async def count_sub_locations(
        self, item_id: str, *, status: ItemStatus | None = None
    ) -> int:
        pass

    @abstractmethod
    async def update_sub_location(self, location: ChecklistLocation) -> ChecklistLocation:
        pass

    @abstractmethod
    async def get_task(self, task_id: str) -> ChecklistTask | None:
        pass

    @abstractmethod
    async def list_tasks(
        self, item_id: str, *, location_id: str | None = None
    ) -> list[ChecklistTask]:
        """Tasks of a location, or of one sub-location, in display order."""
        pass

    @abstractmethod
    async def count_tasks(
        self,
        item_id: str,
        *,
        location_id: str | None = None,
        status: ItemStatus | None = None,
    ) -> int:
        pass

    @abstractmethod
    async def update_task(self, task: ChecklistTask) -> ChecklistTask:
        pass

    # Inspection records

    @abstractmethod
    async def create_entry(self, entry: ItemEntry) -> ItemEntry:
        pass

    @abstractmethod
    async def get_entry(self, entry_id: str) -> ItemEntry | None:
        pass

    @abstractmethod
    async def update_entry(self, entry: ItemEntry) -> ItemEntry:
        pass

    @abstractmethod
    async def list_entries(
        self,
        *,
        task_id: str | None = None,
        location_id: str | None = None,
    ) -> list[ItemEntry]:
        pass

    @abstractmethod
    async def find_orphan_entry(self, inspector_id: str, item_id: str) -> ItemEntry | None:
        """Most recent blank entry by the inspector on the item.

        Blank means no task, no sub-location, and nothing recorded on it yet:
        no condition, remarks, cause, resolution, media or findings.
        Sub-location run records are never orphans.
        """
        pass

    @abstractmethod
    async def add_entry_media(self, media: ItemEntryMedia) -> ItemEntryMedia:
        pass

    @abstractmethod
    async def list_entry_media(self, entry_id: str) -> list[ItemEntryMedia]:
        pass

    @abstractmethod
    async def get_finding(self, entry_id: str, task_id: str) -> ChecklistTaskFinding | None:
        pass

    @abstractmethod
    async def upsert_finding(
        self, entry_id: str, task_id: str, details: FindingDetails
    ) -> ChecklistTaskFinding:
        """Create or replace the finding for `(entry_id, task_id)`."""
        pass
