"""In-job navigation: locations, sub-locations, task lists and numeric replies."""

from typing import Any

from steward.conversation.models import MenuKind, TaskFlowStage
from steward.inspection.enums import ItemStatus
from steward.inspection.errors import ValidationFailure
from steward.inspection.machine import ReplyKind
from steward.inspection.models import ChecklistItem, ChecklistLocation, ChecklistTask
from steward.tools.context import ToolContext, locations_cache_key, text_arg
from steward.tools.formatting import done, numbered

LOCATIONS_PROMPT = "Reply with the number of the location you want to inspect next."
SUB_LOCATIONS_PROMPT = "Reply with the sub-location number you want to inspect."


async def _location_summaries(ctx: ToolContext, work_order_id: str) -> list[dict[str, Any]]:
    key = locations_cache_key(work_order_id)
    cached = await ctx.cache.get(key)
    if cached is not None:
        return cached

    summaries = []
    for item in await ctx.repository.list_items(work_order_id):
        total = await ctx.repository.count_tasks(item.id)
        completed = await ctx.repository.count_tasks(item.id, status=ItemStatus.COMPLETED)
        sub_locations = await ctx.repository.list_sub_locations(item.id)
        summaries.append(
            {
                "contractChecklistItemId": item.id,
                "name": item.name,
                "isCompleted": item.status is ItemStatus.COMPLETED,
                "tasks": total,
                "completed": completed,
                "pending": total - completed,
                "subLocations": [_sub_location_row(i, s) for i, s in enumerate(sub_locations, 1)],
            }
        )
    await ctx.cache.set(key, summaries)
    return summaries


def _sub_location_row(number: int, sub: ChecklistLocation) -> dict[str, Any]:
    return {
        "id": sub.id,
        "number": number,
        "name": sub.name,
        "status": sub.status.value,
    }


async def location_menu(ctx: ToolContext, work_order_id: str) -> dict[str, Any]:
    """Show the job's locations as the active menu."""
    summaries = await _location_summaries(ctx, work_order_id)
    ctx.machine.show_menu(
        ctx.session, MenuKind.LOCATIONS, [s["contractChecklistItemId"] for s in summaries]
    )
    locations = []
    for number, summary in enumerate(summaries, start=1):
        if summary["isCompleted"]:
            status = "completed"
        elif summary["completed"] > 0:
            status = "in_progress"
        else:
            status = "pending"
        locations.append({"number": number, "status": status, **summary})
    return {
        "locations": locations,
        "locationsFormatted": numbered(done(s["name"], s["isCompleted"]) for s in summaries),
        "nextPrompt": LOCATIONS_PROMPT,
    }


async def sub_location_menu(ctx: ToolContext, item_id: str) -> dict[str, Any]:
    """Show the location's sub-locations as the active menu."""
    subs = await ctx.repository.list_sub_locations(item_id)
    ctx.machine.show_menu(ctx.session, MenuKind.SUBLOCATIONS, [s.id for s in subs])
    return {
        "subLocations": [_sub_location_row(i, s) for i, s in enumerate(subs, 1)],
        "subLocationsFormatted": numbered(
            done(s.name, s.status is ItemStatus.COMPLETED) for s in subs
        ),
        "nextPrompt": SUB_LOCATIONS_PROMPT,
    }


def _task_rows(tasks: list[ChecklistTask]) -> list[dict[str, Any]]:
    return [
        {
            "id": task.id,
            "number": number,
            "description": task.name,
            "status": task.status.value,
            "condition": task.condition.value if task.condition else None,
            "locationId": task.location_id,
        }
        for number, task in enumerate(tasks, start=1)
    ]


async def task_menu(
    ctx: ToolContext, item_id: str, sub_location_id: str | None
) -> dict[str, Any]:
    """Show the tasks of a (sub-)location as the active menu."""
    tasks = await ctx.coordinator.tasks_for(item_id, sub_location_id)
    ctx.machine.show_menu(ctx.session, MenuKind.TASKS, [t.id for t in tasks])
    completed = sum(1 for t in tasks if t.status is ItemStatus.COMPLETED)
    return {
        "tasks": _task_rows(tasks),
        "tasksFormatted": numbered(
            done(t.name, t.status is ItemStatus.COMPLETED) for t in tasks
        ),
        "allTasksCompleted": bool(tasks) and completed == len(tasks),
        "progress": {"completed": completed, "total": len(tasks)},
    }


async def _job_item(ctx: ToolContext, work_order_id: str, item_id: str) -> ChecklistItem:
    item = await ctx.repository.get_item(item_id) if item_id else None
    if item is None or item.work_order_id != work_order_id:
        raise ValidationFailure("Location not found for this job. Please pick one from the list.")
    return item


async def get_job_locations(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    work_order_id = ctx.machine.require_job_started(ctx.session)
    return {"success": True, **await location_menu(ctx, work_order_id)}


async def get_sub_locations(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    work_order_id = ctx.machine.require_job_started(ctx.session)
    item = await _job_item(
        ctx,
        work_order_id,
        text_arg(args, "contractChecklistItemId") or ctx.session.current_location_id or "",
    )

    subs = await ctx.repository.list_sub_locations(item.id)
    if not subs:
        return await get_tasks_for_location(ctx, {"contractChecklistItemId": item.id})

    ctx.machine.enter_location(ctx.session, item.id)
    return {"success": True, "location": item.name, **await sub_location_menu(ctx, item.id)}


async def get_tasks_for_location(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Open a task list.

    With sub-locations, the one to inspect is taken from `subLocationId`,
    or picked automatically when a single one is still pending; otherwise
    the sub-location menu is shown instead.
    """
    work_order_id = ctx.machine.require_job_started(ctx.session)
    item = await _job_item(
        ctx,
        work_order_id,
        text_arg(args, "contractChecklistItemId") or ctx.session.current_location_id or "",
    )
    subs = await ctx.repository.list_sub_locations(item.id)

    sub: ChecklistLocation | None = None
    requested = text_arg(args, "subLocationId")
    if requested:
        sub = next((s for s in subs if s.id == requested), None)
        if sub is None:
            raise ValidationFailure("Sub-location not found for this location.")
    elif subs:
        pending = [s for s in subs if s.status is not ItemStatus.COMPLETED]
        candidates = pending or subs
        if len(candidates) > 1:
            ctx.machine.enter_location(ctx.session, item.id)
            return {
                "success": False,
                "requiresSubLocationSelection": True,
                "message": "Select a sub-location before inspecting the tasks.",
                **await sub_location_menu(ctx, item.id),
            }
        sub = candidates[0]

    ctx.machine.enter_tasks(ctx.session, item.id, sub.id if sub else None)
    menu = await task_menu(ctx, item.id, sub.id if sub else None)
    area = sub.name if sub else item.name
    if sub is not None:
        next_prompt = (
            f"Please go through the checklist for {area}.\n\n"
            "Reply in ONE message with the condition for each item in order, e.g.:\n"
            '"1 Good, 2 Good, 3 Fair" or "Good Good Fair".\n\n'
            "You can omit any numbers you want to leave unset."
        )
    else:
        next_prompt = f"Reply with the number of the task in {area} you want to complete."
    return {
        "success": True,
        "location": item.name,
        "subLocation": sub.name if sub else None,
        "subLocationId": sub.id if sub else None,
        "taskFlowStage": TaskFlowStage.CONDITION.value if sub else None,
        "nextPrompt": next_prompt,
        **menu,
    }


async def interpret_reply(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Tell the caller which tool a bare numeric reply should trigger."""
    interpretation = ctx.machine.interpret_reply(ctx.session, text_arg(args, "text"))
    if interpretation.kind is ReplyKind.DECLINE_JOB:
        ctx.machine.decline_job(ctx.session)
    return {
        "success": True,
        "kind": interpretation.kind.value,
        "number": interpretation.number,
        "menu": interpretation.menu.value if interpretation.menu else None,
        "selectedId": interpretation.selected_id,
        "condition": interpretation.condition.value if interpretation.condition else None,
        "nextTool": interpretation.next_tool,
        "nextArgs": interpretation.next_args,
    }
