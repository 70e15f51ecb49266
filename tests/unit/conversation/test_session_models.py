"""Tests for ConversationSession and session merge semantics."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from steward.conversation.models import JobStatus, TaskFlowStage
from steward.conversation.store import apply_partial
from tests.factories.inspection import CONVERSATION_ID, SessionFactory, WALLS_ID


class TestConversationSession:
    """Tests for ConversationSession."""

    def test_defaults(self) -> None:
        """Should start with no job and empty buffers."""
        session = SessionFactory.create()

        assert session.job_status is JobStatus.NONE
        assert session.pending_conditions == []
        assert session.pending_findings == {}
        assert session.pending_media_uploads == []
        assert session.in_task_flow is False

    def test_assignment_validated(self) -> None:
        """Should reject invalid values assigned after construction."""
        session = SessionFactory.create()

        with pytest.raises(ValidationError):
            session.job_status = "finished"

    def test_in_task_flow(self) -> None:
        """Should report a per-task run when a task is focused."""
        assert SessionFactory.in_task().in_task_flow is True
        assert SessionFactory.in_sub_location().in_task_flow is False


class TestActiveStage:
    """Tests for ConversationSession.active_stage."""

    def test_stage_in_task(self) -> None:
        session = SessionFactory.in_task(stage=TaskFlowStage.REMARKS)
        assert session.active_stage is TaskFlowStage.REMARKS

    def test_stage_in_sub_location(self) -> None:
        session = SessionFactory.in_sub_location(stage=TaskFlowStage.CAUSE)
        assert session.active_stage is TaskFlowStage.CAUSE

    def test_no_job_means_no_stage(self) -> None:
        """Should ignore a stale stage once the job is gone."""
        session = SessionFactory.in_task(work_order_id=None)
        assert session.task_flow_stage is TaskFlowStage.CONDITION
        assert session.active_stage is None

    def test_no_focus_means_no_stage(self) -> None:
        """Should ignore a stage left over without a task or sub-location."""
        session = SessionFactory.started(task_flow_stage=TaskFlowStage.MEDIA)
        assert session.active_stage is None


class TestApplyPartial:
    """Tests for apply_partial."""

    def test_creates_session(self) -> None:
        """Should build a new session from the partial."""
        session = apply_partial(CONVERSATION_ID, None, {"inspector_name": "Alex"})

        assert session.conversation_id == CONVERSATION_ID
        assert session.inspector_name == "Alex"

    def test_overlays_existing(self) -> None:
        """Should keep fields the partial does not name."""
        current = SessionFactory.in_task()

        session = apply_partial(CONVERSATION_ID, current, {"task_flow_stage": "cause"})

        assert session.task_flow_stage is TaskFlowStage.CAUSE
        assert session.current_task_id == WALLS_ID

    def test_identity_cannot_change(self) -> None:
        """Should keep the conversation id of the key written to."""
        session = apply_partial(CONVERSATION_ID, None, {"conversation_id": "+6500000000"})
        assert session.conversation_id == CONVERSATION_ID

    def test_refreshes_write_stamp(self) -> None:
        """Should stamp every write."""
        old = datetime(2020, 1, 1, tzinfo=UTC)
        current = SessionFactory.create(last_updated_at=old)

        session = apply_partial(CONVERSATION_ID, current, {})

        assert session.last_updated_at > old

    def test_unknown_field_rejected(self) -> None:
        """Should refuse keys the session does not have."""
        with pytest.raises(KeyError):
            apply_partial(CONVERSATION_ID, None, {"favourite_colour": "blue"})

    def test_invalid_value_rejected(self) -> None:
        """Should re-validate the merged session."""
        with pytest.raises(ValidationError):
            apply_partial(CONVERSATION_ID, None, {"task_flow_stage": "dancing"})
