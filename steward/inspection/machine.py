"""Phase state machine for the inspection conversation.

Flow:
    jobs -> confirm -> started(locations) -> [sublocations] -> tasks
    -> condition -> {cause -> resolution} -> remarks -> media
    -> confirm(finalize) -> tasks

The machine owns every rule about what may happen next. Guards raise
`GuardViolation` before anything is mutated; transitions mutate the session
they are given. Persistence is not its concern.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from steward.conversation.models import (
    ConversationSession,
    JobStatus,
    MenuKind,
    TaskFlowStage,
)
from steward.inspection.enums import Condition
from steward.inspection.errors import GuardViolation, ValidationFailure
from steward.inspection.parser import parse_menu_number

CONFIRM_FIRST = (
    "Please confirm the destination first. "
    "Reply [1] Yes or [2] No to the confirmation prompt."
)
START_JOB_FIRST = "Please start the job first (confirm the destination and reply [1])."
NO_ACTIVE_RUN = "Task context missing. Please pick a task or sub-location from the menu first."
MEDIA_REQUIRED = (
    "Media is required for this condition. Please send at least one photo "
    "(you can add remarks as a caption)."
)
PHOTO_REQUIRED = (
    "Please send at least one photo for this status before marking the task complete."
)
CAUSE_RESOLUTION_REQUIRED = (
    "Please provide both cause and resolution before marking the task complete."
)


class Step(str, Enum):
    """Stage-bound operations within a task or sub-location run."""

    SET_CONDITION = "set_condition"
    SET_CAUSE = "set_cause"
    SET_RESOLUTION = "set_resolution"
    SET_REMARKS = "set_remarks"
    ATTACH_MEDIA = "attach_media"
    SKIP_MEDIA = "skip_media"
    FINALIZE = "finalize"


class ReplyKind(str, Enum):
    """What a bare numeric reply was resolved to."""

    MENU_SELECTION = "menu_selection"
    CONFIRM_JOB = "confirm_job"
    DECLINE_JOB = "decline_job"
    CONDITION = "condition"
    TASK_COMPLETE = "task_complete"
    TASK_NOT_COMPLETE = "task_not_complete"


ALL_STAGES: frozenset[TaskFlowStage] = frozenset(TaskFlowStage)

ACCEPTING_STAGES: dict[Step, frozenset[TaskFlowStage]] = {
    Step.SET_CONDITION: frozenset(
        {
            TaskFlowStage.CONDITION,
            TaskFlowStage.CAUSE,
            TaskFlowStage.RESOLUTION,
            TaskFlowStage.REMARKS,
        }
    ),
    Step.SET_CAUSE: frozenset({TaskFlowStage.CAUSE, TaskFlowStage.RESOLUTION}),
    Step.SET_RESOLUTION: frozenset({TaskFlowStage.CAUSE, TaskFlowStage.RESOLUTION}),
    Step.SET_REMARKS: frozenset({TaskFlowStage.REMARKS, TaskFlowStage.MEDIA}),
    Step.ATTACH_MEDIA: frozenset(
        {TaskFlowStage.REMARKS, TaskFlowStage.MEDIA, TaskFlowStage.CONFIRM}
    ),
    Step.SKIP_MEDIA: frozenset({TaskFlowStage.MEDIA}),
    Step.FINALIZE: ALL_STAGES,
}

STAGE_PROMPTS: dict[TaskFlowStage, str] = {
    TaskFlowStage.CONDITION: (
        "Please set the condition first: [1] Good, [2] Fair, [3] Un-Satisfactory, "
        "[4] Un-Observable, [5] Not Applicable."
    ),
    TaskFlowStage.CAUSE: "Please describe the cause for this issue first.",
    TaskFlowStage.RESOLUTION: "Please provide the resolution first.",
    TaskFlowStage.REMARKS: "Please enter your remarks first.",
    TaskFlowStage.MEDIA: "Please send photos/videos first.",
    TaskFlowStage.CONFIRM: (
        "Please confirm: reply [1] if this is complete, or [2] if you still have more to do."
    ),
}

# Menus the tool loop offers, and the tool that acts on a pick from each.
MENU_TOOLS: dict[MenuKind, str] = {
    MenuKind.JOBS: "confirmJobSelection",
    MenuKind.CONFIRM: "startJob",
    MenuKind.LOCATIONS: "getSubLocations",
    MenuKind.SUBLOCATIONS: "getTasksForLocation",
    MenuKind.TASKS: "completeTask",
}


def _require_exhaustive(table: Mapping[Any, Any], enum: type[Enum], name: str) -> None:
    missing = set(enum) - set(table)
    if missing:
        raise RuntimeError(
            f"{name} has no entry for {sorted(m.value for m in missing)}"
        )


_require_exhaustive(ACCEPTING_STAGES, Step, "ACCEPTING_STAGES")
_require_exhaustive(STAGE_PROMPTS, TaskFlowStage, "STAGE_PROMPTS")
_require_exhaustive(MENU_TOOLS, MenuKind, "MENU_TOOLS")


class ReplyInterpretation(BaseModel):
    """Resolved meaning of a bare numeric reply."""

    kind: ReplyKind
    number: int
    menu: MenuKind | None = None
    selected_id: str | None = None
    condition: Condition | None = None
    next_tool: str | None = None
    next_args: dict[str, Any] = Field(default_factory=dict)


def stage_after_condition(condition: Condition) -> TaskFlowStage:
    """Only FAIR and UNSATISFACTORY detour through cause and resolution."""
    return TaskFlowStage.CAUSE if condition.requires_cause else TaskFlowStage.REMARKS


class PhaseStateMachine:
    """Guards and transitions over a `ConversationSession`.

    Stateless; every method acts on the session passed in.
    """

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def require_job_confirming(self, session: ConversationSession) -> str:
        """Return the id of the job awaiting confirmation."""
        if session.job_status is not JobStatus.CONFIRMING or session.work_order_id is None:
            raise GuardViolation(CONFIRM_FIRST)
        return session.work_order_id

    def require_job_started(self, session: ConversationSession) -> str:
        """Return the started job's id."""
        if session.job_status is not JobStatus.STARTED or session.work_order_id is None:
            raise GuardViolation(START_JOB_FIRST)
        return session.work_order_id

    def require_step(self, session: ConversationSession, step: Step) -> TaskFlowStage:
        """Check that the active stage accepts `step` and return the stage."""
        self.require_job_started(session)
        stage = session.active_stage
        if stage is None:
            raise GuardViolation(NO_ACTIVE_RUN)
        if stage not in ACCEPTING_STAGES[step]:
            raise GuardViolation(STAGE_PROMPTS[stage], taskFlowStage=stage.value)
        return stage

    def require_task_context(self, session: ConversationSession) -> tuple[str, str]:
        """Return `(task_id, item_id)` of the per-task run."""
        if session.current_task_id is None or session.current_task_item_id is None:
            raise GuardViolation(
                "Task context missing. Please restart the task completion flow."
            )
        return session.current_task_id, session.current_task_item_id

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    def show_menu(
        self,
        session: ConversationSession,
        menu: MenuKind | None,
        option_ids: Iterable[str] = (),
    ) -> None:
        session.last_menu = menu
        session.last_menu_options = list(option_ids)

    def confirm_job(self, session: ConversationSession, work_order_id: str) -> None:
        """Pick a job; it waits for a yes/no before it can start."""
        self._clear_navigation(session)
        session.work_order_id = work_order_id
        session.job_status = JobStatus.CONFIRMING
        self.show_menu(session, MenuKind.CONFIRM)

    def start_job(self, session: ConversationSession) -> str:
        work_order_id = self.require_job_confirming(session)
        session.job_status = JobStatus.STARTED
        return work_order_id

    def decline_job(self, session: ConversationSession) -> None:
        self._clear_navigation(session)
        session.work_order_id = None
        session.job_status = JobStatus.NONE
        self.show_menu(session, None)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def enter_location(self, session: ConversationSession, item_id: str) -> None:
        """Select a location; any run in progress elsewhere is abandoned."""
        self.require_job_started(session)
        self._clear_run(session)
        session.current_location_id = item_id
        session.current_sub_location_id = None
        session.current_task_item_id = item_id

    def enter_tasks(
        self,
        session: ConversationSession,
        item_id: str,
        sub_location_id: str | None,
    ) -> None:
        """Open the task list for a (sub-)location and start collecting conditions.

        Re-entering the same sub-location keeps the run's inspection record.
        """
        self.require_job_started(session)
        same_run = (
            session.current_location_id == item_id
            and session.current_sub_location_id == sub_location_id
            and session.current_task_id is None
        )
        entry_id = session.current_task_entry_id if same_run else None
        self._clear_run(session)
        session.current_location_id = item_id
        session.current_sub_location_id = sub_location_id
        session.current_task_item_id = item_id
        session.current_task_entry_id = entry_id
        session.task_flow_stage = TaskFlowStage.CONDITION

    def start_task(self, session: ConversationSession, task_id: str, item_id: str) -> None:
        self.require_job_started(session)
        self._clear_run(session)
        session.current_task_id = task_id
        session.current_task_item_id = item_id
        session.task_flow_stage = TaskFlowStage.CONDITION
        # A bare number now answers the condition prompt, not the task menu.
        self.show_menu(session, None)

    # ------------------------------------------------------------------
    # Run transitions
    # ------------------------------------------------------------------

    def record_task_condition(
        self, session: ConversationSession, condition: Condition
    ) -> TaskFlowStage:
        self.require_step(session, Step.SET_CONDITION)
        session.current_task_condition = condition
        session.pending_task_cause = None
        session.pending_task_resolution = None
        session.task_flow_stage = stage_after_condition(condition)
        return session.task_flow_stage

    def record_sub_location_conditions(
        self, session: ConversationSession, conditions: Iterable[Condition]
    ) -> TaskFlowStage:
        self.require_step(session, Step.SET_CONDITION)
        needs_cause = any(c.requires_cause for c in conditions)
        session.task_flow_stage = TaskFlowStage.CAUSE if needs_cause else TaskFlowStage.REMARKS
        session.pending_task_cause = None
        session.pending_task_resolution = None
        self.show_menu(session, None)
        return session.task_flow_stage

    def reopen_conditions(self, session: ConversationSession) -> None:
        """Send the run back to the condition prompt; buffers are kept."""
        self.require_job_started(session)
        session.task_flow_stage = TaskFlowStage.CONDITION
        self.show_menu(session, None)

    def record_finding_text(
        self,
        session: ConversationSession,
        cause: str | None = None,
        resolution: str | None = None,
    ) -> TaskFlowStage:
        """Store cause and/or resolution; move on once both are present."""
        self.require_step(
            session, Step.SET_CAUSE if cause is not None else Step.SET_RESOLUTION
        )
        if cause:
            session.pending_task_cause = cause
        if resolution:
            session.pending_task_resolution = resolution

        if not session.pending_task_cause:
            session.task_flow_stage = TaskFlowStage.CAUSE
        elif not session.pending_task_resolution:
            session.task_flow_stage = TaskFlowStage.RESOLUTION
        else:
            session.task_flow_stage = TaskFlowStage.REMARKS
        return session.task_flow_stage

    def record_remarks(self, session: ConversationSession, remarks: str | None) -> TaskFlowStage:
        self.require_step(session, Step.SET_REMARKS)
        session.pending_task_remarks = remarks or None
        session.task_flow_stage = TaskFlowStage.MEDIA
        return session.task_flow_stage

    def record_media(self, session: ConversationSession) -> TaskFlowStage:
        """Media during remarks keeps the remarks prompt open; otherwise confirm."""
        stage = self.require_step(session, Step.ATTACH_MEDIA)
        if stage is TaskFlowStage.REMARKS:
            return stage
        session.task_flow_stage = TaskFlowStage.CONFIRM
        return TaskFlowStage.CONFIRM

    def skip_media(
        self, session: ConversationSession, conditions: Iterable[Condition]
    ) -> TaskFlowStage:
        """Legal only when every condition in the run is NOT_APPLICABLE."""
        self.require_step(session, Step.SKIP_MEDIA)
        conditions = list(conditions)
        if not conditions or any(c.requires_media for c in conditions):
            raise GuardViolation(MEDIA_REQUIRED)
        session.task_flow_stage = TaskFlowStage.CONFIRM
        return session.task_flow_stage

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def check_finalize(
        self,
        conditions: Iterable[Condition],
        media_count: int,
        findings_complete: bool,
    ) -> None:
        """Gate completion of a run.

        Args:
            conditions: Conditions recorded in the run
            media_count: Media attached or buffered for the run
            findings_complete: Whether every FAIR/UNSATISFACTORY task has
                both a cause and a resolution

        Raises:
            ValidationFailure: Evidence is missing
        """
        conditions = list(conditions)
        if any(c.requires_cause for c in conditions) and not findings_complete:
            raise ValidationFailure(CAUSE_RESOLUTION_REQUIRED)
        if any(c.requires_media for c in conditions) and media_count == 0:
            raise ValidationFailure(PHOTO_REQUIRED)

    def complete_run(self, session: ConversationSession) -> None:
        """Clear per-run scratch state; keep where the inspector is."""
        self._clear_run(session)
        session.current_task_item_id = None

    # ------------------------------------------------------------------
    # Numeric replies
    # ------------------------------------------------------------------

    def interpret_reply(self, session: ConversationSession, text: str) -> ReplyInterpretation:
        """Resolve a bare numeric reply.

        The last menu shown wins over the active stage, so a "2" meant as a
        menu pick is never read as condition FAIR.

        Raises:
            ValidationFailure: Not a bare number, or out of range for the
                menu or stage it refers to
        """
        number = parse_menu_number(text)
        if number is None:
            raise ValidationFailure(
                "That isn't a menu number. Reply with one of the numbers shown."
            )

        menu = session.last_menu
        if menu is MenuKind.CONFIRM:
            return self._interpret_confirm(session, number)
        if menu is not None:
            return self._interpret_menu(session, menu, number)

        stage = session.active_stage
        if stage is TaskFlowStage.CONDITION:
            condition = Condition.from_code(number)
            if condition is None:
                raise ValidationFailure(STAGE_PROMPTS[TaskFlowStage.CONDITION])
            return ReplyInterpretation(
                kind=ReplyKind.CONDITION,
                number=number,
                condition=condition,
                next_tool="completeTask" if session.in_task_flow else "setSubLocationConditions",
                next_args=(
                    {"phase": "set_condition", "conditionNumber": number}
                    if session.in_task_flow
                    else {"conditionsText": str(number)}
                ),
            )
        if stage is TaskFlowStage.CONFIRM:
            if number not in (1, 2):
                raise ValidationFailure(STAGE_PROMPTS[TaskFlowStage.CONFIRM])
            completed = number == 1
            if session.in_task_flow:
                next_tool: str | None = "completeTask"
                next_args: dict[str, Any] = {"phase": "finalize", "completed": completed}
            else:
                next_tool = "markSubLocationComplete" if completed else None
                next_args = {}
            return ReplyInterpretation(
                kind=ReplyKind.TASK_COMPLETE if completed else ReplyKind.TASK_NOT_COMPLETE,
                number=number,
                next_tool=next_tool,
                next_args=next_args,
            )

        raise ValidationFailure("There is no numbered menu to answer right now.")

    def _interpret_confirm(self, session: ConversationSession, number: int) -> ReplyInterpretation:
        if number == 1:
            return ReplyInterpretation(
                kind=ReplyKind.CONFIRM_JOB,
                number=number,
                menu=MenuKind.CONFIRM,
                next_tool=MENU_TOOLS[MenuKind.CONFIRM],
                next_args={"jobId": session.work_order_id},
            )
        if number == 2:
            return ReplyInterpretation(
                kind=ReplyKind.DECLINE_JOB,
                number=number,
                menu=MenuKind.CONFIRM,
                next_tool="getTodayJobs",
            )
        raise ValidationFailure(
            "That option isn't valid here. "
            "Reply [1] to confirm this job, or [2] to pick another one."
        )

    def _interpret_menu(
        self, session: ConversationSession, menu: MenuKind, number: int
    ) -> ReplyInterpretation:
        options = session.last_menu_options
        if not 1 <= number <= len(options):
            raise ValidationFailure(
                f"The selection [{number}] is not available. "
                f"Please choose a number between 1 and {len(options)}."
                if options
                else "That menu has no options left."
            )
        selected = options[number - 1]
        args_by_menu: dict[MenuKind, dict[str, Any]] = {
            MenuKind.JOBS: {"jobId": selected},
            MenuKind.CONFIRM: {},
            MenuKind.LOCATIONS: {"contractChecklistItemId": selected},
            MenuKind.SUBLOCATIONS: {
                "contractChecklistItemId": session.current_location_id,
                "subLocationId": selected,
            },
            MenuKind.TASKS: {"phase": "start", "taskId": selected},
        }
        return ReplyInterpretation(
            kind=ReplyKind.MENU_SELECTION,
            number=number,
            menu=menu,
            selected_id=selected,
            next_tool=MENU_TOOLS[menu],
            next_args=args_by_menu[menu],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clear_run(self, session: ConversationSession) -> None:
        session.current_task_id = None
        session.current_task_condition = None
        session.current_task_entry_id = None
        session.task_flow_stage = None
        session.pending_task_cause = None
        session.pending_task_resolution = None
        session.pending_task_remarks = None

    def _clear_navigation(self, session: ConversationSession) -> None:
        self._clear_run(session)
        session.current_location_id = None
        session.current_sub_location_id = None
        session.current_task_item_id = None
