"""Deferred write coordinator.

Owns every write that turns conversation state into inspection records.

In deferred mode the sub-location flow buffers conditions, findings and
media inside the session and commits them in one `flush` when the
sub-location's remarks arrive (or when the location is marked complete).
In immediate mode the same calls persist on arrival. The per-task flow
always writes through, since each of its steps already targets one task.

Flush is best effort: a failure for one task or one media item is logged
and left in the buffer for the next flush, and never blocks its siblings.
Every write is an idempotent upsert, so repeating a flush is safe.
"""

from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from steward.config.models.workflow import WriteMode
from steward.conversation.models import (
    ConversationSession,
    PendingConditionSet,
    PendingMedia,
    PendingTaskCondition,
)
from steward.inspection.enums import Condition
from steward.inspection.models import (
    ChecklistTask,
    FindingDetails,
    ItemEntry,
    ItemEntryMedia,
)
from steward.inspection.parser import cause_resolution_from_remarks
from steward.inspection.repository import InspectionRepository
from steward.observability.logging import get_logger

logger = get_logger(__name__)


class FlushReport(BaseModel):
    """What one flush committed, and what it left behind."""

    entry_id: str | None = None
    conditions_persisted: int = 0
    findings_persisted: int = 0
    media_attached: int = 0
    failures: list[str] = Field(
        default_factory=list, description="One line per skipped write"
    )

    @property
    def ok(self) -> bool:
        return not self.failures


class DeferredWriteCoordinator:
    """Buffers and commits inspection writes for one conversation session.

    Methods mutate the session they are given (buffers, current entry id)
    and leave persisting it to the caller.
    """

    def __init__(
        self,
        repository: InspectionRepository,
        mode: WriteMode = WriteMode.DEFERRED,
    ) -> None:
        self._repository = repository
        self._mode = mode

    @property
    def deferred(self) -> bool:
        return self._mode is WriteMode.DEFERRED

    # ------------------------------------------------------------------
    # Inspection record
    # ------------------------------------------------------------------

    async def ensure_entry(
        self,
        session: ConversationSession,
        item_id: str,
        *,
        sub_location_id: str | None = None,
        task_id: str | None = None,
    ) -> ItemEntry:
        """Return the run's inspection record, creating it on first use.

        A sub-location run reuses the inspector's existing record for that
        sub-location, so a retried commit never leaves a second one behind.
        """
        if session.current_task_entry_id:
            entry = await self._repository.get_entry(session.current_task_entry_id)
            if entry is not None:
                return entry
            logger.warning(
                "current_entry_missing",
                entry_id=session.current_task_entry_id,
                item_id=item_id,
            )

        entry = None
        if task_id is None and sub_location_id is not None:
            entry = await self._run_entry(session.inspector_id, item_id, sub_location_id)
        if entry is None:
            entry = await self._create_entry(
                ItemEntry(
                    item_id=item_id,
                    inspector_id=session.inspector_id,
                    location_id=sub_location_id,
                    task_id=task_id,
                    condition=session.current_task_condition,
                )
            )
        session.current_task_entry_id = entry.id
        return entry

    async def _run_entry(
        self, inspector_id: str | None, item_id: str, sub_location_id: str
    ) -> ItemEntry | None:
        """Latest sub-location record by the inspector, if one exists."""
        for entry in reversed(await self._repository.list_entries(location_id=sub_location_id)):
            if (
                entry.item_id == item_id
                and entry.task_id is None
                and entry.inspector_id == inspector_id
            ):
                return entry
        return None

    async def _pair_entry(
        self, inspector_id: str | None, item_id: str, sub_location_id: str | None
    ) -> ItemEntry:
        """Record for a pair flushed outside its own run; never the session's current one."""
        if sub_location_id is not None:
            entry = await self._run_entry(inspector_id, item_id, sub_location_id)
            if entry is not None:
                return entry
        return await self._create_entry(
            ItemEntry(item_id=item_id, inspector_id=inspector_id, location_id=sub_location_id)
        )

    async def _create_entry(self, entry: ItemEntry) -> ItemEntry:
        entry = await self._repository.create_entry(entry)
        logger.info(
            "item_entry_created",
            entry_id=entry.id,
            item_id=entry.item_id,
            sub_location_id=entry.location_id,
            task_id=entry.task_id,
        )
        return entry

    async def attach_orphan_entry(
        self, inspector_id: str | None, item_id: str, task_id: str
    ) -> ItemEntry | None:
        """Reattach the inspector's latest blank entry on the item to `task_id`.

        Reusing the record keeps an abandoned earlier step from leaving a
        duplicate behind. Only blank records qualify, so evidence recorded
        for another run is never counted for this task.
        """
        if inspector_id is None:
            return None
        orphan = await self._repository.find_orphan_entry(inspector_id, item_id)
        if orphan is None:
            return None
        orphan.task_id = task_id
        await self._repository.update_entry(orphan)
        logger.info("orphan_entry_reattached", entry_id=orphan.id, task_id=task_id)
        return orphan

    # ------------------------------------------------------------------
    # Sub-location flow
    # ------------------------------------------------------------------

    async def record_conditions(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
        assignments: Sequence[tuple[ChecklistTask, Condition]],
    ) -> None:
        """Buffer or persist the conditions parsed for one sub-location.

        Buffering again for the same pair merges into its one set: tasks
        named again take the new condition, the rest keep theirs.
        """
        if self.deferred:
            merged: dict[str, Condition] = {}
            for pending in session.pending_conditions:
                if pending.matches(item_id, sub_location_id):
                    merged.update({t.task_id: t.condition for t in pending.tasks})
            merged.update({task.id: condition for task, condition in assignments})
            pending = PendingConditionSet(
                item_id=item_id,
                sub_location_id=sub_location_id,
                tasks=[
                    PendingTaskCondition(task_id=task_id, condition=condition)
                    for task_id, condition in merged.items()
                ],
            )
            session.pending_conditions = [
                s for s in session.pending_conditions if not s.matches(item_id, sub_location_id)
            ] + [pending]
            logger.info(
                "conditions_buffered",
                item_id=item_id,
                sub_location_id=sub_location_id,
                count=len(pending.tasks),
            )
            return

        entry = await self.ensure_entry(session, item_id, sub_location_id=sub_location_id)
        for task, condition in assignments:
            await self._persist_condition(task, condition, session.inspector_id)
            await self._merge_finding(entry.id, task.id, FindingDetails(condition=condition))

    async def record_findings(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
        task_ids: Iterable[str],
        cause: str | None,
        resolution: str | None,
    ) -> None:
        """Attach a cause and/or resolution to each issue task of the run."""
        update = FindingDetails(cause=cause, resolution=resolution)
        task_ids = list(task_ids)
        if self.deferred:
            for task_id in task_ids:
                current = session.pending_findings.get(task_id, FindingDetails())
                session.pending_findings[task_id] = current.merge(update)
            return

        entry = await self.ensure_entry(session, item_id, sub_location_id=sub_location_id)
        await self._write_entry_finding(entry, cause, resolution)
        for task_id in task_ids:
            await self._merge_finding(entry.id, task_id, update)

    async def record_media(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
        media: Sequence[PendingMedia],
    ) -> list[ItemEntryMedia]:
        """Attach media to the run's record, or buffer it until the record exists.

        Returns the rows attached now; empty when everything was buffered.
        """
        if session.current_task_entry_id is None and self.deferred:
            session.pending_media_uploads.extend(m.model_copy() for m in media)
            logger.info(
                "media_buffered",
                item_id=item_id,
                sub_location_id=sub_location_id,
                count=len(media),
            )
            return []

        entry = await self.ensure_entry(
            session,
            item_id,
            sub_location_id=sub_location_id,
            task_id=session.current_task_id,
        )
        existing = {m.url for m in await self._repository.list_entry_media(entry.id)}
        attached = []
        for item in media:
            if item.url in existing:
                continue
            attached.append(await self._attach(entry.id, item, len(existing)))
            existing.add(item.url)
        return attached

    async def run_conditions(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
    ) -> dict[str, Condition]:
        """Conditions for the pair's tasks: persisted values overlaid by buffered ones."""
        conditions = {
            task.id: task.condition
            for task in await self.tasks_for(item_id, sub_location_id)
            if task.condition is not None
        }
        for pending in session.pending_conditions:
            if pending.matches(item_id, sub_location_id):
                conditions.update({t.task_id: t.condition for t in pending.tasks})
        return conditions

    async def tasks_for(self, item_id: str, sub_location_id: str | None) -> list[ChecklistTask]:
        tasks = await self._repository.list_tasks(item_id, location_id=sub_location_id)
        if sub_location_id is None:
            tasks = [t for t in tasks if t.location_id is None]
        return tasks

    # ------------------------------------------------------------------
    # Per-task flow (always written through)
    # ------------------------------------------------------------------

    async def record_task_condition(
        self,
        session: ConversationSession,
        task: ChecklistTask,
        condition: Condition,
    ) -> ItemEntry:
        entry = await self.ensure_entry(
            session,
            task.item_id,
            sub_location_id=task.location_id,
            task_id=task.id,
        )
        entry.condition = condition
        entry.inspector_id = entry.inspector_id or session.inspector_id
        await self._repository.update_entry(entry)
        await self._persist_condition(task, condition, session.inspector_id)
        await self._merge_finding(entry.id, task.id, FindingDetails(condition=condition))
        return entry

    async def record_task_finding(
        self,
        session: ConversationSession,
        task: ChecklistTask,
        cause: str | None = None,
        resolution: str | None = None,
    ) -> ItemEntry:
        entry = await self.ensure_entry(
            session,
            task.item_id,
            sub_location_id=task.location_id,
            task_id=task.id,
        )
        await self._write_entry_finding(entry, cause, resolution)
        await self._merge_finding(
            entry.id, task.id, FindingDetails(cause=cause, resolution=resolution)
        )
        return entry

    async def record_task_remarks(
        self,
        session: ConversationSession,
        task: ChecklistTask,
        remarks: str | None,
    ) -> ItemEntry:
        entry = await self.ensure_entry(
            session,
            task.item_id,
            sub_location_id=task.location_id,
            task_id=task.id,
        )
        entry.remarks = remarks
        await self._repository.update_entry(entry)
        return entry

    # ------------------------------------------------------------------
    # Evidence for finalize
    # ------------------------------------------------------------------

    async def resolve_finding(
        self,
        session: ConversationSession,
        task_id: str,
        *,
        use_scratch: bool = True,
    ) -> FindingDetails:
        """Best known cause and resolution for a task.

        Sources in priority order: buffered session values, the task's
        finding record on the current entry, then "Cause: ...\\nResolution: ..."
        lines in the entry remarks. A higher source only fills what it has.
        """
        entry = None
        if session.current_task_entry_id:
            entry = await self._repository.get_entry(session.current_task_entry_id)

        cause, resolution = cause_resolution_from_remarks(
            session.pending_task_remarks or (entry.remarks if entry else None)
        )
        details = FindingDetails(cause=cause, resolution=resolution)
        if entry is not None:
            details = details.merge(
                FindingDetails(cause=entry.cause, resolution=entry.resolution)
            )
            finding = await self._repository.get_finding(entry.id, task_id)
            if finding is not None:
                details = details.merge(finding.details)
        if task_id in session.pending_findings:
            details = details.merge(session.pending_findings[task_id])
        if use_scratch:
            details = details.merge(
                FindingDetails(
                    cause=session.pending_task_cause,
                    resolution=session.pending_task_resolution,
                )
            )
        return details

    async def media_count(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
        task_id: str | None = None,
    ) -> int:
        """Media attached to the current entry plus media buffered for the run."""
        attached = 0
        if session.current_task_entry_id:
            attached = len(await self._repository.list_entry_media(session.current_task_entry_id))
        buffered = sum(
            1
            for m in session.pending_media_uploads
            if m.matches(item_id, sub_location_id) and m.task_id == task_id
        )
        return attached + buffered

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def pending_pairs(
        self, session: ConversationSession, item_id: str
    ) -> list[str | None]:
        """Sub-locations of `item_id` that still hold buffered work."""
        pairs: list[str | None] = []
        for pending in session.pending_conditions:
            if pending.item_id == item_id and pending.sub_location_id not in pairs:
                pairs.append(pending.sub_location_id)
        for media in session.pending_media_uploads:
            if media.task_item_id == item_id and media.sub_location_id not in pairs:
                pairs.append(media.sub_location_id)
        return pairs

    async def flush(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
        remarks: str | None = None,
    ) -> FlushReport:
        """Commit everything buffered for `(item_id, sub_location_id)`.

        Buffers of other pairs are left untouched. Creating the inspection
        record is the one step whose failure propagates; nothing has been
        written before it.

        Args:
            session: Session holding the buffers; consumed entries are removed
            item_id: Location id
            sub_location_id: Sub-location id, or None for a location's own tasks
            remarks: Remarks to store on the inspection record

        Returns:
            FlushReport describing what was committed and what was skipped
        """
        report = FlushReport()
        current_run = (
            session.current_location_id == item_id
            and session.current_sub_location_id == sub_location_id
            and session.current_task_id is None
        )

        if current_run:
            entry = await self.ensure_entry(session, item_id, sub_location_id=sub_location_id)
        else:
            entry = await self._pair_entry(session.inspector_id, item_id, sub_location_id)
        report.entry_id = entry.id

        if remarks is not None:
            entry.remarks = remarks
        if current_run:
            entry.cause = session.pending_task_cause or entry.cause
            entry.resolution = session.pending_task_resolution or entry.resolution
        try:
            await self._repository.update_entry(entry)
        except Exception as e:
            report.failures.append(f"entry {entry.id}: {e}")
            logger.error("flush_entry_update_failed", entry_id=entry.id, error=str(e))

        tasks = {task.id: task for task in await self.tasks_for(item_id, sub_location_id)}
        consumed_tasks = await self._flush_conditions(
            session, entry, item_id, sub_location_id, tasks, report
        )
        consumed_findings = await self._flush_findings(
            session, entry, tasks, consumed_tasks, report
        )
        consumed_media = await self._flush_media(
            session, entry, item_id, sub_location_id, report
        )

        remaining_sets = []
        for pending in session.pending_conditions:
            if pending.matches(item_id, sub_location_id):
                pending = pending.model_copy(
                    update={
                        "tasks": [t for t in pending.tasks if t.task_id not in consumed_tasks]
                    }
                )
                if not pending.tasks:
                    continue
            remaining_sets.append(pending)
        session.pending_conditions = remaining_sets
        session.pending_findings = {
            task_id: details
            for task_id, details in session.pending_findings.items()
            if task_id not in consumed_findings
        }
        session.pending_media_uploads = [
            m for i, m in enumerate(session.pending_media_uploads) if i not in consumed_media
        ]

        logger.info(
            "deferred_writes_flushed",
            item_id=item_id,
            sub_location_id=sub_location_id,
            entry_id=entry.id,
            conditions=report.conditions_persisted,
            findings=report.findings_persisted,
            media=report.media_attached,
            failures=len(report.failures),
        )
        return report

    async def _flush_conditions(
        self,
        session: ConversationSession,
        entry: ItemEntry,
        item_id: str,
        sub_location_id: str | None,
        tasks: dict[str, ChecklistTask],
        report: FlushReport,
    ) -> set[str]:
        consumed: set[str] = set()
        for pending in session.pending_conditions:
            if not pending.matches(item_id, sub_location_id):
                continue
            for assignment in pending.tasks:
                task = tasks.get(assignment.task_id)
                if task is None:
                    report.failures.append(f"task {assignment.task_id}: not found")
                    logger.warning("flush_task_missing", task_id=assignment.task_id)
                    continue
                buffered = session.pending_findings.get(task.id, FindingDetails())
                try:
                    await self._persist_condition(task, assignment.condition, session.inspector_id)
                    await self._merge_finding(
                        entry.id,
                        task.id,
                        FindingDetails(condition=assignment.condition).merge(buffered),
                    )
                except Exception as e:
                    report.failures.append(f"task {task.id}: {e}")
                    logger.error("flush_condition_failed", task_id=task.id, error=str(e))
                    continue
                consumed.add(task.id)
                report.conditions_persisted += 1
        return consumed

    async def _flush_findings(
        self,
        session: ConversationSession,
        entry: ItemEntry,
        tasks: dict[str, ChecklistTask],
        already_written: set[str],
        report: FlushReport,
    ) -> set[str]:
        """Findings buffered for tasks of the pair whose condition was not re-buffered."""
        consumed = set(already_written)
        for task_id, details in session.pending_findings.items():
            if task_id not in tasks or task_id in already_written:
                continue
            try:
                await self._merge_finding(entry.id, task_id, details)
            except Exception as e:
                report.failures.append(f"finding {task_id}: {e}")
                logger.error("flush_finding_failed", task_id=task_id, error=str(e))
                continue
            consumed.add(task_id)
            report.findings_persisted += 1
        return consumed

    async def _flush_media(
        self,
        session: ConversationSession,
        entry: ItemEntry,
        item_id: str,
        sub_location_id: str | None,
        report: FlushReport,
    ) -> set[int]:
        consumed: set[int] = set()
        existing = {m.url for m in await self._repository.list_entry_media(entry.id)}
        position = len(existing)
        for index, media in enumerate(session.pending_media_uploads):
            if not media.matches(item_id, sub_location_id):
                continue
            if media.url in existing:
                # Attached by an earlier commit whose session update was lost.
                consumed.add(index)
                continue
            try:
                await self._attach(entry.id, media, position)
            except Exception as e:
                report.failures.append(f"media {media.url}: {e}")
                logger.error("flush_media_failed", url=media.url, error=str(e))
                continue
            consumed.add(index)
            existing.add(media.url)
            position += 1
            report.media_attached += 1
        return consumed

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _persist_condition(
        self, task: ChecklistTask, condition: Condition, inspector_id: str | None
    ) -> None:
        task.condition = condition
        task.inspector_id = inspector_id or task.inspector_id
        await self._repository.update_task(task)

    async def _merge_finding(self, entry_id: str, task_id: str, update: FindingDetails) -> None:
        existing = await self._repository.get_finding(entry_id, task_id)
        details = existing.details.merge(update) if existing else update
        await self._repository.upsert_finding(entry_id, task_id, details)

    async def _write_entry_finding(
        self, entry: ItemEntry, cause: str | None, resolution: str | None
    ) -> None:
        if cause:
            entry.cause = cause
        if resolution:
            entry.resolution = resolution
        await self._repository.update_entry(entry)

    async def _attach(self, entry_id: str, media: PendingMedia, position: int) -> ItemEntryMedia:
        return await self._repository.add_entry_media(
            ItemEntryMedia(
                entry_id=entry_id,
                url=media.url,
                media_type=media.media_type,
                caption=media.caption,
                order=position,
            )
        )
