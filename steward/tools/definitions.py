"""Function-calling schemas for the inspection tools.

One entry per handler in `steward.tools.handlers.HANDLERS`, in the
`{"type": "function", "function": {...}}` shape chat-completion APIs accept.
"""

from typing import Any

_STRING: dict[str, Any] = {"type": "string"}
_RUN_PAIR: dict[str, Any] = {
    "contractChecklistItemId": {**_STRING, "description": "Location id of the run in progress"},
    "subLocationId": {**_STRING, "description": "Sub-location id of the run in progress"},
}


def _tool(
    name: str,
    description: str,
    properties: dict[str, Any] | None = None,
    required: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties or {},
                "required": required or [],
            },
        },
    }


TOOL_DEFINITIONS: list[dict[str, Any]] = [
    _tool(
        "getTodayJobs",
        "List today's inspection jobs for the identified inspector.",
        {
            "inspectorId": _STRING,
            "inspectorPhone": _STRING,
            "reset": {
                "type": "boolean",
                "description": "Clear job, location and task context before listing",
            },
        },
    ),
    _tool(
        "collectInspectorInfo",
        "Identify the inspector by full name and phone number.",
        {"name": _STRING, "phone": _STRING},
        ["name", "phone"],
    ),
    _tool(
        "confirmJobSelection",
        "Pick a job and show its details for a [1] Yes / [2] No confirmation.",
        {"jobId": _STRING},
        ["jobId"],
    ),
    _tool(
        "startJob",
        "Start the job awaiting confirmation and list its locations.",
        {"jobId": _STRING},
    ),
    _tool("getJobLocations", "List the started job's locations with progress."),
    _tool(
        "getSubLocations",
        "List a location's sub-locations, or its tasks when it has none.",
        {"contractChecklistItemId": _STRING},
        ["contractChecklistItemId"],
    ),
    _tool(
        "getTasksForLocation",
        "Open the task list of a location or sub-location.",
        {"contractChecklistItemId": _STRING, "subLocationId": _STRING},
        ["contractChecklistItemId"],
    ),
    _tool(
        "setSubLocationConditions",
        "Set conditions for all tasks of the current sub-location in one message. "
        "Does not complete tasks.",
        {
            **_RUN_PAIR,
            "conditionsText": {
                **_STRING,
                "description": 'User input like "1 Good, 2 Good, 3 Fair" or "Good Good Fair"',
            },
        },
        ["conditionsText"],
    ),
    _tool(
        "setSubLocationCause",
        "Capture the cause for the current sub-location's issues.",
        {**_RUN_PAIR, "cause": _STRING},
        ["cause"],
    ),
    _tool(
        "setSubLocationResolution",
        "Capture the resolution for the current sub-location's issues.",
        {**_RUN_PAIR, "resolution": _STRING},
        ["resolution"],
    ),
    _tool(
        "setSubLocationCauseResolution",
        "Capture cause and resolution from one message for the current sub-location.",
        {**_RUN_PAIR, "text": _STRING},
        ["text"],
    ),
    _tool(
        "setSubLocationRemarks",
        "Save remarks for the current sub-location and commit its buffered work.",
        {**_RUN_PAIR, "remarks": _STRING},
        ["remarks"],
    ),
    _tool(
        "attachMedia",
        "Attach photos or videos sent by the inspector to the active task or sub-location.",
        {
            "media": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "url": {**_STRING, "description": "Already hosted media"},
                        "content": {**_STRING, "description": "Base64 file content"},
                        "contentType": _STRING,
                        "caption": _STRING,
                        "filename": _STRING,
                    },
                },
            }
        },
        ["media"],
    ),
    _tool(
        "completeTask",
        "Per-task workflow: condition, cause/resolution, remarks, media, then finalize.",
        {
            "phase": {
                "type": "string",
                "enum": [
                    "start",
                    "set_condition",
                    "set_cause",
                    "set_resolution",
                    "set_remarks",
                    "skip_media",
                    "finalize",
                ],
            },
            "taskId": _STRING,
            "conditionNumber": {
                "type": "number",
                "description": "1=Good, 2=Fair, 3=Un-Satisfactory, 4=Un-Observable, 5=Not Applicable",
            },
            "cause": _STRING,
            "resolution": _STRING,
            "remarks": _STRING,
            "completed": {"type": "boolean"},
        },
        ["phase"],
    ),
    _tool(
        "markSubLocationComplete",
        "Mark the current sub-location complete once its evidence is in.",
        _RUN_PAIR,
    ),
    _tool(
        "markLocationComplete",
        "Mark a location complete when all of its tasks are done.",
        {"contractChecklistItemId": _STRING},
    ),
    _tool(
        "getTaskMedia",
        "Get photos, videos and remarks recorded for a task or sub-location.",
        {"taskId": _STRING},
    ),
    _tool(
        "interpretReply",
        "Resolve a bare numeric reply against the last menu or the active stage.",
        {"text": _STRING},
        ["text"],
    ),
]
