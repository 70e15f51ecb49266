"""Sub-location flow: conditions for every task in one message, then evidence.

    conditions -> {cause, resolution} -> remarks (flush) -> media -> complete
"""

from typing import Any

from steward.conversation.models import TaskFlowStage
from steward.inspection.enums import ItemStatus
from steward.inspection.errors import ParseFailure, ValidationFailure
from steward.inspection.machine import STAGE_PROMPTS, Step
from steward.inspection.models import ChecklistLocation
from steward.inspection.parser import (
    CAUSE_RESOLUTION_PARSE_ERROR,
    parse_cause_resolution,
    parse_conditions,
)
from steward.observability.logging import get_logger
from steward.tools.context import (
    ToolContext,
    locations_cache_key,
    require_text,
    text_arg,
)
from steward.tools.formatting import condition_lines
from steward.tools.handlers.navigation import location_menu, sub_location_menu

logger = get_logger(__name__)

CAUSE_RESOLUTION_PROMPT = (
    "Please provide the cause and resolution in ONE message. For example:\n"
    "1: misaligned hinges, 2: re-adjusted and tightened hinges\n"
    "or\n"
    "Cause: misaligned hinges  Resolution: re-adjusted and tightened hinges"
)
REMARKS_PROMPT = "Please enter your remarks for this sub-location (a short sentence is fine)."
MEDIA_PROMPT = "Next: please provide photos/videos (captions will be saved per media)."
LOCATION_PENDING = "Location cannot be marked complete yet. Some tasks are still pending."
CONDITIONS_MISSING = (
    "These tasks still have no condition: {names}. Please send their conditions first."
)

_FINDING_REPLIES: dict[TaskFlowStage, str] = {
    TaskFlowStage.CAUSE: "Please describe the cause.",
    TaskFlowStage.RESOLUTION: "Thanks. Please provide the resolution.",
    TaskFlowStage.REMARKS: "Thanks. Cause and resolution saved. " + REMARKS_PROMPT,
}


async def _sub_location(ctx: ToolContext, item_id: str, sub_location_id: str) -> ChecklistLocation:
    sub = await ctx.repository.get_sub_location(sub_location_id)
    if sub is None or sub.item_id != item_id:
        raise ValidationFailure("Sub-location not found for this location.")
    return sub


async def set_sub_location_conditions(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    item_id, sub_location_id = ctx.run_pair(args)
    ctx.machine.require_step(ctx.session, Step.SET_CONDITION)
    sub = await _sub_location(ctx, item_id, sub_location_id)

    tasks = await ctx.coordinator.tasks_for(item_id, sub_location_id)
    if not tasks:
        raise ValidationFailure("No tasks found for this sub-location.")
    parsed = parse_conditions(text_arg(args, "conditionsText", "text"), len(tasks))
    if not parsed.ok:
        raise ParseFailure(parsed.error or "", allowed=parsed.allowed)

    assignments = [(tasks[position - 1], condition) for position, condition in parsed.assignments]
    await ctx.coordinator.record_conditions(ctx.session, item_id, sub_location_id, assignments)
    conditions = await ctx.coordinator.run_conditions(ctx.session, item_id, sub_location_id)
    stage = ctx.machine.record_sub_location_conditions(ctx.session, conditions.values())
    if not ctx.coordinator.deferred:
        await ctx.invalidate(locations_cache_key(ctx.machine.require_job_started(ctx.session)))

    requires_cause = stage is TaskFlowStage.CAUSE
    lines = [f"Conditions updated for {sub.name}."]
    lines += condition_lines(
        (position, tasks[position - 1].name, condition)
        for position, condition in parsed.assignments
    )
    lines += ["", CAUSE_RESOLUTION_PROMPT if requires_cause else "Next: " + REMARKS_PROMPT]
    logger.info(
        "sub_location_conditions_recorded",
        sub_location_id=sub_location_id,
        count=len(assignments),
        requires_cause=requires_cause,
    )
    return {
        "success": True,
        "updatedCount": len(assignments),
        "requiresCause": requires_cause,
        "conditions": [
            {
                "number": position,
                "taskId": tasks[position - 1].id,
                "name": tasks[position - 1].name,
                "condition": condition.value,
            }
            for position, condition in parsed.assignments
        ],
        "taskFlowStage": stage.value,
        "message": "\n".join(lines),
    }


async def _record_finding(
    ctx: ToolContext,
    args: dict[str, Any],
    cause: str | None,
    resolution: str | None,
) -> dict[str, Any]:
    item_id, sub_location_id = ctx.run_pair(args)
    ctx.machine.require_step(
        ctx.session, Step.SET_CAUSE if cause is not None else Step.SET_RESOLUTION
    )
    conditions = await ctx.coordinator.run_conditions(ctx.session, item_id, sub_location_id)
    issue_task_ids = [task_id for task_id, c in conditions.items() if c.requires_cause]

    stage = ctx.machine.record_finding_text(ctx.session, cause=cause, resolution=resolution)
    await ctx.coordinator.record_findings(
        ctx.session, item_id, sub_location_id, issue_task_ids, cause, resolution
    )
    return {
        "success": True,
        "taskFlowStage": stage.value,
        "message": _FINDING_REPLIES.get(stage, STAGE_PROMPTS[stage]),
    }


async def set_sub_location_cause_resolution(
    ctx: ToolContext, args: dict[str, Any]
) -> dict[str, Any]:
    ctx.run_pair(args)
    ctx.machine.require_step(ctx.session, Step.SET_CAUSE)
    cause, resolution = parse_cause_resolution(text_arg(args, "text"))
    if not cause and not resolution:
        raise ParseFailure(CAUSE_RESOLUTION_PARSE_ERROR)
    if cause is None:
        return await _record_finding(ctx, args, None, resolution)
    return await _record_finding(ctx, args, cause, resolution)


async def set_sub_location_cause(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    cause = require_text(args, "cause", "Please provide a brief cause description.")
    return await _record_finding(ctx, args, cause, None)


async def set_sub_location_resolution(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    resolution = require_text(args, "resolution", "Please provide a brief resolution description.")
    return await _record_finding(ctx, args, None, resolution)


async def set_sub_location_remarks(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Store remarks and commit the run's buffered writes."""
    item_id, sub_location_id = ctx.run_pair(args)
    ctx.machine.require_step(ctx.session, Step.SET_REMARKS)
    remarks = require_text(args, "remarks", REMARKS_PROMPT)
    sub = await _sub_location(ctx, item_id, sub_location_id)

    report = await ctx.coordinator.flush(
        ctx.session, item_id, sub_location_id, remarks=f"[{sub.name}] {remarks}"
    )
    stage = ctx.machine.record_remarks(ctx.session, remarks)
    await ctx.invalidate(locations_cache_key(ctx.machine.require_job_started(ctx.session)))
    return {
        "success": True,
        "entryId": report.entry_id,
        "taskFlowStage": stage.value,
        "flushed": {
            "conditions": report.conditions_persisted,
            "findings": report.findings_persisted,
            "media": report.media_attached,
            "failures": len(report.failures),
        },
        "message": f"Remarks saved for {sub.name}.\n\n{MEDIA_PROMPT}",
    }


async def mark_sub_location_complete(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Validate evidence for the run, then complete its tasks and sub-location.

    Buffered writes are flushed before validation and kept when it fails.
    """
    item_id, sub_location_id = ctx.run_pair(args)
    work_order_id = ctx.machine.require_job_started(ctx.session)
    ctx.machine.require_step(ctx.session, Step.FINALIZE)
    sub = await _sub_location(ctx, item_id, sub_location_id)

    await ctx.coordinator.flush(ctx.session, item_id, sub_location_id)
    conditions = await ctx.coordinator.run_conditions(ctx.session, item_id, sub_location_id)
    if not conditions:
        raise ValidationFailure(STAGE_PROMPTS[TaskFlowStage.CONDITION])
    tasks = await ctx.coordinator.tasks_for(item_id, sub_location_id)
    unrated = [task.name for task in tasks if task.id not in conditions]
    if unrated:
        ctx.machine.reopen_conditions(ctx.session)
        raise ValidationFailure(
            CONDITIONS_MISSING.format(names=", ".join(unrated)),
            taskFlowStage=TaskFlowStage.CONDITION.value,
        )
    findings_complete = True
    for task_id, condition in conditions.items():
        if condition.requires_cause:
            finding = await ctx.coordinator.resolve_finding(ctx.session, task_id)
            findings_complete = findings_complete and finding.has_cause_and_resolution
    media_count = await ctx.coordinator.media_count(ctx.session, item_id, sub_location_id)
    ctx.machine.check_finalize(conditions.values(), media_count, findings_complete)

    for task in tasks:
        if task.status is not ItemStatus.COMPLETED:
            task.status = ItemStatus.COMPLETED
            task.inspector_id = ctx.session.inspector_id or task.inspector_id
            await ctx.repository.update_task(task)
    sub.status = ItemStatus.COMPLETED
    await ctx.repository.update_sub_location(sub)

    pending_subs = await ctx.repository.count_sub_locations(item_id, status=ItemStatus.PENDING)
    pending_tasks = await ctx.repository.count_tasks(item_id, status=ItemStatus.PENDING)
    location_completed = pending_subs == 0 and pending_tasks == 0
    if location_completed:
        item = await ctx.repository.get_item(item_id)
        if item is not None:
            item.status = ItemStatus.COMPLETED
            item.completed_at = ctx.now
            item.completed_by = ctx.session.inspector_id
            await ctx.repository.update_item(item)

    ctx.machine.complete_run(ctx.session)
    await ctx.invalidate(locations_cache_key(work_order_id))
    logger.info(
        "sub_location_completed",
        sub_location_id=sub_location_id,
        location_completed=location_completed,
    )
    return {
        "success": True,
        "message": f"{sub.name} marked complete.",
        "locationCompleted": location_completed,
        **await sub_location_menu(ctx, item_id),
        "nextPrompt": "Reply with your sub-location choice, or pick another area.",
    }


async def mark_location_complete(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Commit any buffered work for the location and mark it complete.

    Every task must already be completed.
    """
    work_order_id = ctx.machine.require_job_started(ctx.session)
    item_id = text_arg(args, "contractChecklistItemId") or ctx.session.current_location_id
    item = await ctx.repository.get_item(item_id) if item_id else None
    if item is None or item.work_order_id != work_order_id:
        raise ValidationFailure("Checklist item not found.")

    for sub_location_id in ctx.coordinator.pending_pairs(ctx.session, item.id):
        await ctx.coordinator.flush(ctx.session, item.id, sub_location_id)

    tasks = await ctx.repository.list_tasks(item.id)
    if not tasks or any(t.status is not ItemStatus.COMPLETED for t in tasks):
        raise ValidationFailure(LOCATION_PENDING)

    for sub in await ctx.repository.list_sub_locations(item.id):
        if sub.status is not ItemStatus.COMPLETED:
            sub.status = ItemStatus.COMPLETED
            await ctx.repository.update_sub_location(sub)
    item.status = ItemStatus.COMPLETED
    item.completed_at = ctx.now
    item.completed_by = ctx.session.inspector_id
    await ctx.repository.update_item(item)

    if ctx.session.current_location_id == item.id:
        ctx.machine.complete_run(ctx.session)
    await ctx.invalidate(locations_cache_key(work_order_id))
    logger.info("location_completed", item_id=item.id)
    return {
        "success": True,
        "message": "Location marked complete.",
        **await location_menu(ctx, work_order_id),
    }
