"""Enums for conversation state."""

from enum import Enum


class JobStatus(str, Enum):
    """Where the conversation is in the job lifecycle.

    - NONE: no job picked, or the pick was declined
    - CONFIRMING: a job was picked and awaits a [1] Yes / [2] No reply
    - STARTED: the job is underway; in-job navigation is allowed
    """

    NONE = "none"
    CONFIRMING = "confirming"
    STARTED = "started"


class MenuKind(str, Enum):
    """Last numbered menu shown to the inspector."""

    JOBS = "jobs"
    CONFIRM = "confirm"
    LOCATIONS = "locations"
    SUBLOCATIONS = "sublocations"
    TASKS = "tasks"


class TaskFlowStage(str, Enum):
    """Step within a per-task or per-sub-location data collection run."""

    CONDITION = "condition"
    CAUSE = "cause"
    RESOLUTION = "resolution"
    REMARKS = "remarks"
    MEDIA = "media"
    CONFIRM = "confirm"
