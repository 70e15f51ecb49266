"""Tool handlers keyed by the tool name the assistant calls."""

from collections.abc import Awaitable, Callable
from typing import Any

from steward.tools.context import ToolContext
from steward.tools.handlers.jobs import (
    collect_inspector_info,
    confirm_job_selection,
    get_today_jobs,
    start_job,
)
from steward.tools.handlers.media import attach_media, get_task_media
from steward.tools.handlers.navigation import (
    get_job_locations,
    get_sub_locations,
    get_tasks_for_location,
    interpret_reply,
)
from steward.tools.handlers.sublocation import (
    mark_location_complete,
    mark_sub_location_complete,
    set_sub_location_cause,
    set_sub_location_cause_resolution,
    set_sub_location_conditions,
    set_sub_location_remarks,
    set_sub_location_resolution,
)
from steward.tools.handlers.task_flow import complete_task

ToolHandler = Callable[[ToolContext, dict[str, Any]], Awaitable[dict[str, Any]]]

HANDLERS: dict[str, ToolHandler] = {
    "getTodayJobs": get_today_jobs,
    "collectInspectorInfo": collect_inspector_info,
    "confirmJobSelection": confirm_job_selection,
    "startJob": start_job,
    "getJobLocations": get_job_locations,
    "getSubLocations": get_sub_locations,
    "getTasksForLocation": get_tasks_for_location,
    "setSubLocationConditions": set_sub_location_conditions,
    "setSubLocationCause": set_sub_location_cause,
    "setSubLocationResolution": set_sub_location_resolution,
    "setSubLocationCauseResolution": set_sub_location_cause_resolution,
    "setSubLocationRemarks": set_sub_location_remarks,
    "attachMedia": attach_media,
    "completeTask": complete_task,
    "markSubLocationComplete": mark_sub_location_complete,
    "markLocationComplete": mark_location_complete,
    "getTaskMedia": get_task_media,
    "interpretReply": interpret_reply,
}

__all__ = ["HANDLERS", "ToolHandler"]
