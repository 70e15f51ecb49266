"""Per-task flow behind the `completeTask` tool.

Phases run in order, one per call:

    start -> set_condition -> [set_cause -> set_resolution] -> set_remarks
    -> (attachMedia | skip_media) -> finalize

Every phase writes straight through to the repository.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from steward.conversation.models import TaskFlowStage
from steward.inspection.enums import Condition, ItemStatus
from steward.inspection.errors import ParseFailure, ValidationFailure
from steward.inspection.machine import STAGE_PROMPTS, Step
from steward.inspection.models import ChecklistTask
from steward.inspection.parser import ALLOWED_CONDITION_NAMES, condition_from_word
from steward.observability.logging import get_logger
from steward.tools.context import ToolContext, locations_cache_key, text_arg
from steward.tools.formatting import CONDITION_MENU
from steward.tools.handlers.navigation import task_menu

logger = get_logger(__name__)

INVALID_CONDITION = "Invalid condition number. Please use 1-5."
MISSING_DECISION = "Missing completion decision. Provide completed=true or completed=false."
_SKIP_WORDS = frozenset({"", "skip", "no", "none", "nil", "-"})

PhaseHandler = Callable[[ToolContext, dict[str, Any]], Awaitable[dict[str, Any]]]


async def _current_task(ctx: ToolContext) -> ChecklistTask:
    task_id, _ = ctx.machine.require_task_context(ctx.session)
    task = await ctx.repository.get_task(task_id)
    if task is None:
        raise ValidationFailure("Task not found. Please pick the task from the menu again.")
    return task


async def _start(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    work_order_id = ctx.machine.require_job_started(ctx.session)
    task_id = text_arg(args, "taskId")
    if not task_id:
        raise ValidationFailure("Missing task identifier. Please pick a task from the menu.")
    task = await ctx.repository.get_task(task_id)
    item = await ctx.repository.get_item(task.item_id) if task else None
    if task is None or item is None or item.work_order_id != work_order_id:
        raise ValidationFailure("Task not found for this job. Please pick one from the menu.")

    ctx.machine.start_task(ctx.session, task.id, task.item_id)
    ctx.session.current_location_id = task.item_id
    ctx.session.current_sub_location_id = task.location_id
    orphan = await ctx.coordinator.attach_orphan_entry(
        ctx.session.inspector_id, task.item_id, task.id
    )
    if orphan is not None:
        ctx.session.current_task_entry_id = orphan.id

    return {
        "success": True,
        "taskId": task.id,
        "taskName": task.name,
        "entryId": ctx.session.current_task_entry_id,
        "taskFlowStage": TaskFlowStage.CONDITION.value,
        "message": f"{task.name}: what is the condition?\n{CONDITION_MENU}",
    }


def _condition_arg(args: dict[str, Any]) -> Condition:
    number = args.get("conditionNumber")
    condition: Condition | None = None
    if isinstance(number, int) and not isinstance(number, bool):
        condition = Condition.from_code(number)
    elif isinstance(number, str) and number.strip().isdigit():
        condition = Condition.from_code(int(number.strip()))
    elif text_arg(args, "condition"):
        condition = condition_from_word(text_arg(args, "condition"))
    if condition is None:
        raise ParseFailure(INVALID_CONDITION, allowed=list(ALLOWED_CONDITION_NAMES))
    return condition


async def _set_condition(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    ctx.machine.require_task_context(ctx.session)
    ctx.machine.require_step(ctx.session, Step.SET_CONDITION)
    condition = _condition_arg(args)
    task = await _current_task(ctx)

    stage = ctx.machine.record_task_condition(ctx.session, condition)
    entry = await ctx.coordinator.record_task_condition(ctx.session, task, condition)
    await ctx.invalidate(locations_cache_key(ctx.machine.require_job_started(ctx.session)))

    if stage is TaskFlowStage.CAUSE:
        prompt = "Please describe the cause of this issue."
    else:
        prompt = "Please enter your remarks for this task."
        if condition is Condition.NOT_APPLICABLE:
            prompt += ' Reply "skip" if there is nothing to add.'
    return {
        "success": True,
        "condition": condition.value,
        "entryId": entry.id,
        "taskFlowStage": stage.value,
        "message": f"Condition set to {condition.label}. {prompt}",
    }


async def _record_finding(
    ctx: ToolContext, cause: str | None, resolution: str | None
) -> dict[str, Any]:
    task = await _current_task(ctx)
    stage = ctx.machine.record_finding_text(ctx.session, cause=cause, resolution=resolution)
    await ctx.coordinator.record_task_finding(ctx.session, task, cause=cause, resolution=resolution)
    prompts = {
        TaskFlowStage.CAUSE: "Please describe the cause.",
        TaskFlowStage.RESOLUTION: "Thanks. Please provide the resolution.",
        TaskFlowStage.REMARKS: "Thanks. Please enter your remarks for this task.",
    }
    return {
        "success": True,
        "taskFlowStage": stage.value,
        "message": prompts.get(stage, STAGE_PROMPTS[stage]),
    }


async def _set_cause(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    ctx.machine.require_task_context(ctx.session)
    ctx.machine.require_step(ctx.session, Step.SET_CAUSE)
    cause = text_arg(args, "cause", "remarks", "notes")
    if not cause:
        raise ValidationFailure("Please provide a brief cause description.")
    return await _record_finding(ctx, cause, None)


async def _set_resolution(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    ctx.machine.require_task_context(ctx.session)
    ctx.machine.require_step(ctx.session, Step.SET_RESOLUTION)
    resolution = text_arg(args, "resolution", "remarks", "notes")
    if not resolution:
        raise ValidationFailure("Please provide a brief resolution description.")
    return await _record_finding(ctx, None, resolution)


async def _set_remarks(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    ctx.machine.require_task_context(ctx.session)
    ctx.machine.require_step(ctx.session, Step.SET_REMARKS)
    remarks: str | None = text_arg(args, "remarks", "notes")
    not_applicable = ctx.session.current_task_condition is Condition.NOT_APPLICABLE
    if not_applicable and remarks.casefold() in _SKIP_WORDS:
        remarks = None
    elif not remarks:
        raise ValidationFailure("Please enter your remarks for this task.")
    task = await _current_task(ctx)

    stage = ctx.machine.record_remarks(ctx.session, remarks)
    await ctx.coordinator.record_task_remarks(ctx.session, task, remarks)
    message = "Remarks saved. Please send photos/videos for this task."
    if not_applicable:
        message += ' Media is optional for Not Applicable; reply "skip" to continue without it.'
    return {"success": True, "taskFlowStage": stage.value, "message": message}


async def _skip_media(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    ctx.machine.require_task_context(ctx.session)
    condition = ctx.session.current_task_condition
    stage = ctx.machine.skip_media(ctx.session, [condition] if condition else [])
    return {
        "success": True,
        "mediaSkipped": True,
        "taskFlowStage": stage.value,
        "message": "No media needed. " + STAGE_PROMPTS[TaskFlowStage.CONFIRM],
    }


async def _finalize(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Close the run; `completed=true` requires full evidence."""
    work_order_id = ctx.machine.require_job_started(ctx.session)
    ctx.machine.require_task_context(ctx.session)
    ctx.machine.require_step(ctx.session, Step.FINALIZE)
    completed = args.get("completed")
    if not isinstance(completed, bool):
        raise ValidationFailure(MISSING_DECISION)
    task = await _current_task(ctx)

    condition = ctx.session.current_task_condition or task.condition
    if completed:
        if condition is None:
            raise ValidationFailure(STAGE_PROMPTS[TaskFlowStage.CONDITION])
        finding = await ctx.coordinator.resolve_finding(ctx.session, task.id)
        media_count = await ctx.coordinator.media_count(
            ctx.session, task.item_id, task.location_id, task_id=task.id
        )
        ctx.machine.check_finalize([condition], media_count, finding.has_cause_and_resolution)

    task.status = ItemStatus.COMPLETED if completed else ItemStatus.PENDING
    task.condition = condition
    task.inspector_id = ctx.session.inspector_id or task.inspector_id
    await ctx.repository.update_task(task)
    if completed:
        entry = await ctx.coordinator.ensure_entry(
            ctx.session, task.item_id, sub_location_id=task.location_id, task_id=task.id
        )
        if entry.condition is not condition:
            entry.condition = condition
            await ctx.repository.update_entry(entry)
        await _roll_up(ctx, task)

    ctx.machine.complete_run(ctx.session)
    await ctx.invalidate(locations_cache_key(work_order_id))
    logger.info("task_finalized", task_id=task.id, completed=completed)
    menu = await task_menu(
        ctx, ctx.session.current_location_id or task.item_id, ctx.session.current_sub_location_id
    )
    return {
        "success": True,
        "taskCompleted": completed,
        "message": f"{task.name} marked complete." if completed else f"{task.name} updated.",
        **menu,
    }


async def _roll_up(ctx: ToolContext, task: ChecklistTask) -> None:
    """Complete the task's sub-location and location once nothing is pending."""
    if task.location_id is not None:
        pending = await ctx.repository.count_tasks(
            task.item_id, location_id=task.location_id, status=ItemStatus.PENDING
        )
        sub = await ctx.repository.get_sub_location(task.location_id)
        if pending == 0 and sub is not None and sub.status is not ItemStatus.COMPLETED:
            sub.status = ItemStatus.COMPLETED
            await ctx.repository.update_sub_location(sub)

    if await ctx.repository.count_tasks(task.item_id, status=ItemStatus.PENDING) == 0:
        item = await ctx.repository.get_item(task.item_id)
        if item is not None and item.status is not ItemStatus.COMPLETED:
            item.status = ItemStatus.COMPLETED
            item.completed_at = ctx.now
            item.completed_by = ctx.session.inspector_id
            await ctx.repository.update_item(item)


PHASES: dict[str, PhaseHandler] = {
    "start": _start,
    "set_condition": _set_condition,
    "set_cause": _set_cause,
    "set_resolution": _set_resolution,
    "set_remarks": _set_remarks,
    "skip_media": _skip_media,
    "finalize": _finalize,
}


async def complete_task(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    phase = text_arg(args, "phase") or "start"
    handler = PHASES.get(phase)
    if handler is None:
        raise ValidationFailure(f"Unknown phase: {phase}")
    return await handler(ctx, args)
