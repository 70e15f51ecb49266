"""Tests for PhaseStateMachine guards and transitions."""

import pytest

from steward.conversation.models import JobStatus, MenuKind, TaskFlowStage
from steward.inspection.enums import Condition
from steward.inspection.errors import GuardViolation, ValidationFailure
from steward.inspection.machine import (
    CAUSE_RESOLUTION_REQUIRED,
    MEDIA_REQUIRED,
    PHOTO_REQUIRED,
    STAGE_PROMPTS,
    PhaseStateMachine,
    ReplyKind,
    Step,
)
from tests.factories.inspection import (
    BEDROOM_ID,
    KITCHEN_ID,
    SINK_ID,
    WALLS_ID,
    WORK_ORDER_ID,
    SessionFactory,
)


@pytest.fixture
def machine() -> PhaseStateMachine:
    return PhaseStateMachine()


class TestJobLifecycle:
    """Tests for job confirmation and start."""

    def test_start_job_requires_confirmation(self, machine) -> None:
        """Should reject startJob while no job awaits confirmation."""
        session = SessionFactory.create()

        with pytest.raises(GuardViolation):
            machine.start_job(session)

        assert session.job_status is JobStatus.NONE

    def test_confirm_then_start(self, machine) -> None:
        """Should move none -> confirming -> started."""
        session = SessionFactory.create()

        machine.confirm_job(session, WORK_ORDER_ID)
        assert session.job_status is JobStatus.CONFIRMING
        assert session.last_menu is MenuKind.CONFIRM

        assert machine.start_job(session) == WORK_ORDER_ID
        assert session.job_status is JobStatus.STARTED

    def test_decline_clears_job(self, machine) -> None:
        """Should drop the picked job and its navigation."""
        session = SessionFactory.in_sub_location()

        machine.decline_job(session)

        assert session.work_order_id is None
        assert session.job_status is JobStatus.NONE
        assert session.current_location_id is None
        assert session.task_flow_stage is None

    def test_navigation_requires_started_job(self, machine) -> None:
        """Should reject in-job navigation before the job starts."""
        session = SessionFactory.create(
            work_order_id=WORK_ORDER_ID, job_status=JobStatus.CONFIRMING
        )

        with pytest.raises(GuardViolation):
            machine.enter_location(session, KITCHEN_ID)

        assert session.current_location_id is None


class TestNavigation:
    """Tests for entering locations, sub-locations and tasks."""

    def test_enter_tasks_opens_condition_stage(self, machine) -> None:
        """Should open a run at the condition stage."""
        session = SessionFactory.started()

        machine.enter_tasks(session, KITCHEN_ID, SINK_ID)

        assert session.current_location_id == KITCHEN_ID
        assert session.current_sub_location_id == SINK_ID
        assert session.task_flow_stage is TaskFlowStage.CONDITION

    def test_reentering_same_run_keeps_entry(self, machine) -> None:
        """Should keep the run's inspection record when re-entering it."""
        session = SessionFactory.in_sub_location(current_task_entry_id="entry-1")

        machine.enter_tasks(session, KITCHEN_ID, SINK_ID)

        assert session.current_task_entry_id == "entry-1"

    def test_entering_other_run_drops_entry(self, machine) -> None:
        """Should start a fresh record for a different run."""
        session = SessionFactory.in_sub_location(current_task_entry_id="entry-1")

        machine.enter_tasks(session, BEDROOM_ID, None)

        assert session.current_task_entry_id is None

    def test_start_task_clears_menu(self, machine) -> None:
        """Should stop a bare number from reading as a task pick."""
        session = SessionFactory.started(last_menu=MenuKind.TASKS, last_menu_options=[WALLS_ID])

        machine.start_task(session, WALLS_ID, BEDROOM_ID)

        assert session.current_task_id == WALLS_ID
        assert session.last_menu is None
        assert session.task_flow_stage is TaskFlowStage.CONDITION


class TestRunTransitions:
    """Tests for condition, finding, remarks and media transitions."""

    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (Condition.GOOD, TaskFlowStage.REMARKS),
            (Condition.FAIR, TaskFlowStage.CAUSE),
            (Condition.UNSATISFACTORY, TaskFlowStage.CAUSE),
            (Condition.UN_OBSERVABLE, TaskFlowStage.REMARKS),
            (Condition.NOT_APPLICABLE, TaskFlowStage.REMARKS),
        ],
    )
    def test_condition_routes_cause_only_for_issues(self, machine, condition, expected) -> None:
        """Should detour through cause only for FAIR and UNSATISFACTORY."""
        session = SessionFactory.in_task()

        assert machine.record_task_condition(session, condition) is expected
        assert session.current_task_condition is condition

    def test_sub_location_conditions_with_issue(self, machine) -> None:
        """Should ask for a cause when any task is FAIR."""
        session = SessionFactory.in_sub_location()

        stage = machine.record_sub_location_conditions(session, [Condition.GOOD, Condition.FAIR])

        assert stage is TaskFlowStage.CAUSE

    def test_finding_text_moves_on_when_complete(self, machine) -> None:
        """Should wait for the resolution, then move to remarks."""
        session = SessionFactory.in_task(stage=TaskFlowStage.CAUSE)

        assert machine.record_finding_text(session, cause="loose") is TaskFlowStage.RESOLUTION
        assert machine.record_finding_text(session, resolution="fixed") is TaskFlowStage.REMARKS
        assert session.pending_task_cause == "loose"
        assert session.pending_task_resolution == "fixed"

    def test_step_rejected_in_wrong_stage(self, machine) -> None:
        """Should reject remarks while a condition is still due."""
        session = SessionFactory.in_task(stage=TaskFlowStage.CONDITION)

        with pytest.raises(GuardViolation) as exc_info:
            machine.require_step(session, Step.SET_REMARKS)

        assert exc_info.value.message == STAGE_PROMPTS[TaskFlowStage.CONDITION]
        assert exc_info.value.details["taskFlowStage"] == "condition"

    def test_step_rejected_without_run(self, machine) -> None:
        """Should reject stage-bound steps when no run is active."""
        session = SessionFactory.started(task_flow_stage=TaskFlowStage.CONDITION)

        with pytest.raises(GuardViolation):
            machine.require_step(session, Step.SET_CONDITION)

    def test_media_during_remarks_keeps_stage(self, machine) -> None:
        """Should keep the remarks prompt open when media arrives first."""
        session = SessionFactory.in_task(stage=TaskFlowStage.REMARKS)

        assert machine.record_media(session) is TaskFlowStage.REMARKS

    def test_media_moves_to_confirm(self, machine) -> None:
        """Should ask for confirmation once media arrives at the media stage."""
        session = SessionFactory.in_task(stage=TaskFlowStage.MEDIA)

        assert machine.record_media(session) is TaskFlowStage.CONFIRM


class TestSkipMedia:
    """Tests for skip_media."""

    def test_allowed_for_not_applicable(self, machine) -> None:
        """Should skip media only for NOT_APPLICABLE."""
        session = SessionFactory.in_task(stage=TaskFlowStage.MEDIA)

        stage = machine.skip_media(session, [Condition.NOT_APPLICABLE])

        assert stage is TaskFlowStage.CONFIRM

    def test_rejected_for_other_conditions(self, machine) -> None:
        """Should reject and leave the stage unchanged."""
        session = SessionFactory.in_task(stage=TaskFlowStage.MEDIA)

        with pytest.raises(GuardViolation) as exc_info:
            machine.skip_media(session, [Condition.GOOD])

        assert exc_info.value.message == MEDIA_REQUIRED
        assert session.task_flow_stage is TaskFlowStage.MEDIA


class TestFinalize:
    """Tests for check_finalize and complete_run."""

    def test_fair_requires_cause_and_resolution(self, machine) -> None:
        """Should reject FAIR without a complete finding."""
        with pytest.raises(ValidationFailure) as exc_info:
            machine.check_finalize([Condition.FAIR], media_count=1, findings_complete=False)

        assert exc_info.value.message == CAUSE_RESOLUTION_REQUIRED

    def test_media_required(self, machine) -> None:
        """Should reject a rated task with no media."""
        with pytest.raises(ValidationFailure) as exc_info:
            machine.check_finalize([Condition.GOOD], media_count=0, findings_complete=True)

        assert exc_info.value.message == PHOTO_REQUIRED

    def test_not_applicable_exempt_from_media(self, machine) -> None:
        """Should accept NOT_APPLICABLE with zero media."""
        machine.check_finalize([Condition.NOT_APPLICABLE], media_count=0, findings_complete=False)

    def test_complete_run_keeps_navigation(self, machine) -> None:
        """Should clear scratch state but keep where the inspector is."""
        session = SessionFactory.in_sub_location(
            stage=TaskFlowStage.CONFIRM,
            pending_task_cause="loose",
            pending_task_resolution="fixed",
            current_task_entry_id="entry-1",
        )

        machine.complete_run(session)

        assert session.task_flow_stage is None
        assert session.pending_task_cause is None
        assert session.pending_task_resolution is None
        assert session.current_task_entry_id is None
        assert session.current_location_id == KITCHEN_ID
        assert session.current_sub_location_id == SINK_ID


class TestInterpretReply:
    """Tests for numeric reply disambiguation."""

    def test_menu_pick(self, machine) -> None:
        """Should resolve a number against the last menu."""
        session = SessionFactory.started(
            last_menu=MenuKind.LOCATIONS, last_menu_options=[KITCHEN_ID, BEDROOM_ID]
        )

        reply = machine.interpret_reply(session, "2")

        assert reply.kind is ReplyKind.MENU_SELECTION
        assert reply.selected_id == BEDROOM_ID
        assert reply.next_tool == "getSubLocations"
        assert reply.next_args == {"contractChecklistItemId": BEDROOM_ID}

    def test_menu_wins_over_condition_stage(self, machine) -> None:
        """Should read "2" as a menu pick even while a condition is due."""
        session = SessionFactory.in_sub_location(
            last_menu=MenuKind.TASKS, last_menu_options=["t1", "t2"]
        )

        reply = machine.interpret_reply(session, "2")

        assert reply.kind is ReplyKind.MENU_SELECTION
        assert reply.condition is None

    def test_condition_code(self, machine) -> None:
        """Should map 1..5 onto a condition when no menu is showing."""
        session = SessionFactory.in_task(stage=TaskFlowStage.CONDITION)

        reply = machine.interpret_reply(session, "2")

        assert reply.kind is ReplyKind.CONDITION
        assert reply.condition is Condition.FAIR
        assert reply.next_tool == "completeTask"
        assert reply.next_args == {"phase": "set_condition", "conditionNumber": 2}

    def test_out_of_range_menu_pick(self, machine) -> None:
        """Should reject a number the menu does not list."""
        session = SessionFactory.started(last_menu=MenuKind.JOBS, last_menu_options=["wo-1"])

        with pytest.raises(ValidationFailure):
            machine.interpret_reply(session, "3")

    def test_confirm_menu(self, machine) -> None:
        """Should map [1] to startJob and [2] to a decline."""
        session = SessionFactory.create(
            work_order_id=WORK_ORDER_ID,
            job_status=JobStatus.CONFIRMING,
            last_menu=MenuKind.CONFIRM,
        )

        assert machine.interpret_reply(session, "1").next_tool == "startJob"
        assert machine.interpret_reply(session, "2").kind is ReplyKind.DECLINE_JOB

    def test_task_confirm_stage(self, machine) -> None:
        """Should turn [1] at the confirm stage into a finalize call."""
        session = SessionFactory.in_task(stage=TaskFlowStage.CONFIRM)

        reply = machine.interpret_reply(session, "1")

        assert reply.kind is ReplyKind.TASK_COMPLETE
        assert reply.next_args == {"phase": "finalize", "completed": True}

    def test_not_a_number(self, machine) -> None:
        """Should reject free text."""
        session = SessionFactory.started()

        with pytest.raises(ValidationFailure):
            machine.interpret_reply(session, "good")
