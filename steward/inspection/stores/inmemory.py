"""In-memory implementation of InspectionRepository."""

from collections.abc import Sequence
from datetime import date

from steward.db.errors import NotFoundError
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
    utc_now,
)
from steward.inspection.repository import InspectionRepository

Record = (
    Inspector
    | WorkOrder
    | ChecklistItem
    | ChecklistLocation
    | ChecklistTask
    | ItemEntry
    | ItemEntryMedia
)


class InMemoryInspectionRepository(InspectionRepository):
    """In-memory InspectionRepository for testing and development.

    Uses simple dict storage with linear scan for queries. Records are
    copied on the way in and out so callers never share instances with
    the store.
    """

    def __init__(self) -> None:
        self._inspectors: dict[str, Inspector] = {}
        self._work_orders: dict[str, WorkOrder] = {}
        self._items: dict[str, ChecklistItem] = {}
        self._sub_locations: dict[str, ChecklistLocation] = {}
        self._tasks: dict[str, ChecklistTask] = {}
        self._entries: dict[str, ItemEntry] = {}
        self._media: dict[str, ItemEntryMedia] = {}
        self._findings: dict[tuple[str, str], ChecklistTaskFinding] = {}

    def seed(self, *records: Record) -> None:
        """Load fixture records."""
        tables: dict[type, dict] = {
            Inspector: self._inspectors,
            WorkOrder: self._work_orders,
            ChecklistItem: self._items,
            ChecklistLocation: self._sub_locations,
            ChecklistTask: self._tasks,
            ItemEntry: self._entries,
            ItemEntryMedia: self._media,
        }
        for record in records:
            tables[type(record)][record.id] = record.model_copy(deep=True)

    @staticmethod
    def _save(table: dict, record: Record, kind: str) -> Record:
        if record.id not in table:
            raise NotFoundError(f"{kind} not found: {record.id}")
        table[record.id] = record.model_copy(deep=True)
        return record

    # Inspectors and jobs

    async def get_inspector(self, inspector_id: str) -> Inspector | None:
        found = self._inspectors.get(inspector_id)
        return found.model_copy() if found else None

    async def find_inspectors(
        self,
        *,
        name: str | None = None,
        phones: Sequence[str] = (),
    ) -> list[Inspector]:
        wanted_name = name.casefold() if name else None
        results = []
        for inspector in self._inspectors.values():
            if not inspector.active:
                continue
            if wanted_name and inspector.name.casefold() != wanted_name:
                continue
            if phones and inspector.phone not in phones:
                continue
            results.append(inspector.model_copy())
        return results

    async def get_work_order(self, work_order_id: str) -> WorkOrder | None:
        found = self._work_orders.get(work_order_id)
        return found.model_copy() if found else None

    async def list_work_orders(self, inspector_id: str, day: date) -> list[WorkOrder]:
        orders = [
            wo.model_copy()
            for wo in self._work_orders.values()
            if wo.inspector_id == inspector_id and wo.scheduled_start.date() == day
        ]
        return sorted(orders, key=lambda wo: wo.scheduled_start)

    async def update_work_order(self, work_order: WorkOrder) -> WorkOrder:
        return self._save(self._work_orders, work_order, "Work order")

    # Checklist hierarchy

    async def get_item(self, item_id: str) -> ChecklistItem | None:
        found = self._items.get(item_id)
        return found.model_copy() if found else None

    async def list_items(self, work_order_id: str) -> list[ChecklistItem]:
        items = [i.model_copy() for i in self._items.values() if i.work_order_id == work_order_id]
        return sorted(items, key=lambda i: i.order)

    async def update_item(self, item: ChecklistItem) -> ChecklistItem:
        return self._save(self._items, item, "Checklist item")

    async def get_sub_location(self, location_id: str) -> ChecklistLocation | None:
        found = self._sub_locations.get(location_id)
        return found.model_copy() if found else None

    async def list_sub_locations(self, item_id: str) -> list[ChecklistLocation]:
        subs = [s.model_copy() for s in self._sub_locations.values() if s.item_id == item_id]
        return sorted(subs, key=lambda s: s.order)

    async def count_sub_locations(
        self, item_id: str, *, status: ItemStatus | None = None
    ) -> int:
        return sum(
            1
            for s in self._sub_locations.values()
            if s.item_id == item_id and (status is None or s.status == status)
        )

    async def update_sub_location(self, location: ChecklistLocation) -> ChecklistLocation:
        return self._save(self._sub_locations, location, "Sub-location")

    async def get_task(self, task_id: str) -> ChecklistTask | None:
        found = self._tasks.get(task_id)
        return found.model_copy() if found else None

    async def list_tasks(
        self, item_id: str, *, location_id: str | None = None
    ) -> list[ChecklistTask]:
        tasks = [
            t.model_copy()
            for t in self._tasks.values()
            if t.item_id == item_id and (location_id is None or t.location_id == location_id)
        ]
        return sorted(tasks, key=lambda t: t.order)

    async def count_tasks(
        self,
        item_id: str,
        *,
        location_id: str | None = None,
        status: ItemStatus | None = None,
    ) -> int:
        tasks = await self.list_tasks(item_id, location_id=location_id)
        return sum(1 for t in tasks if status is None or t.status == status)

    async def update_task(self, task: ChecklistTask) -> ChecklistTask:
        task.updated_at = utc_now()
        return self._save(self._tasks, task, "Task")

    # Inspection records

    async def create_entry(self, entry: ItemEntry) -> ItemEntry:
        self._entries[entry.id] = entry.model_copy(deep=True)
        return entry

    async def get_entry(self, entry_id: str) -> ItemEntry | None:
        found = self._entries.get(entry_id)
        return found.model_copy() if found else None

    async def update_entry(self, entry: ItemEntry) -> ItemEntry:
        return self._save(self._entries, entry, "Item entry")

    async def list_entries(
        self,
        *,
        task_id: str | None = None,
        location_id: str | None = None,
    ) -> list[ItemEntry]:
        entries = [
            e.model_copy()
            for e in self._entries.values()
            if (task_id is None or e.task_id == task_id)
            and (location_id is None or e.location_id == location_id)
        ]
        return sorted(entries, key=lambda e: e.created_at)

    async def find_orphan_entry(self, inspector_id: str, item_id: str) -> ItemEntry | None:
        orphans = [
            e
            for e in self._entries.values()
            if e.inspector_id == inspector_id
            and e.item_id == item_id
            and e.task_id is None
            and e.location_id is None
            and self._is_blank(e)
        ]
        if not orphans:
            return None
        return max(orphans, key=lambda e: e.created_at).model_copy()

    def _is_blank(self, entry: ItemEntry) -> bool:
        if entry.condition or entry.remarks or entry.cause or entry.resolution:
            return False
        if any(m.entry_id == entry.id for m in self._media.values()):
            return False
        return not any(entry_id == entry.id for entry_id, _ in self._findings)

    async def add_entry_media(self, media: ItemEntryMedia) -> ItemEntryMedia:
        if media.entry_id not in self._entries:
            raise NotFoundError(f"Item entry not found: {media.entry_id}")
        self._media[media.id] = media.model_copy()
        return media

    async def list_entry_media(self, entry_id: str) -> list[ItemEntryMedia]:
        media = [m.model_copy() for m in self._media.values() if m.entry_id == entry_id]
        return sorted(media, key=lambda m: (m.order, m.created_at))

    async def get_finding(self, entry_id: str, task_id: str) -> ChecklistTaskFinding | None:
        found = self._findings.get((entry_id, task_id))
        return found.model_copy(deep=True) if found else None

    async def upsert_finding(
        self, entry_id: str, task_id: str, details: FindingDetails
    ) -> ChecklistTaskFinding:
        existing = self._findings.get((entry_id, task_id))
        if existing is None:
            finding = ChecklistTaskFinding(entry_id=entry_id, task_id=task_id, details=details)
        else:
            finding = existing.model_copy(update={"details": details, "updated_at": utc_now()})
        self._findings[(entry_id, task_id)] = finding
        return finding.model_copy(deep=True)
