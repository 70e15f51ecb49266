"""Tests for InMemorySessionStore."""

import pytest

from steward.conversation.models import TaskFlowStage
from steward.conversation.stores import InMemorySessionStore
from tests.factories.inspection import CONVERSATION_ID


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(ttl_seconds=60, clock=clock)


class TestInMemorySessionStore:
    """Tests for InMemorySessionStore."""

    @pytest.mark.asyncio
    async def test_missing_session(self, store) -> None:
        """Should return None for an unknown conversation."""
        assert await store.get(CONVERSATION_ID) is None

    @pytest.mark.asyncio
    async def test_merge_creates_and_overlays(self, store) -> None:
        """Should create on first merge and keep earlier fields after."""
        await store.merge(CONVERSATION_ID, {"inspector_name": "Alex"})
        await store.merge(CONVERSATION_ID, {"task_flow_stage": TaskFlowStage.CAUSE})

        session = await store.get(CONVERSATION_ID)

        assert session.inspector_name == "Alex"
        assert session.task_flow_stage is TaskFlowStage.CAUSE

    @pytest.mark.asyncio
    async def test_expires_after_ttl(self, store, clock) -> None:
        """Should drop the session once its TTL passes."""
        await store.merge(CONVERSATION_ID, {"inspector_name": "Alex"})

        clock.now += 61

        assert await store.get(CONVERSATION_ID) is None

    @pytest.mark.asyncio
    async def test_merge_refreshes_ttl(self, store, clock) -> None:
        """Should restart the TTL on every write."""
        await store.merge(CONVERSATION_ID, {"inspector_name": "Alex"})
        clock.now += 50
        await store.merge(CONVERSATION_ID, {})
        clock.now += 50

        session = await store.get(CONVERSATION_ID)

        assert session is not None
        assert session.inspector_name == "Alex"

    @pytest.mark.asyncio
    async def test_returns_copies(self, store) -> None:
        """Should not let callers mutate the stored session in place."""
        await store.merge(CONVERSATION_ID, {"last_menu_options": ["a"]})

        session = await store.get(CONVERSATION_ID)
        session.last_menu_options.append("b")

        assert (await store.get(CONVERSATION_ID)).last_menu_options == ["a"]

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, store) -> None:
        """Should refuse a merge naming a field the session lacks."""
        with pytest.raises(KeyError):
            await store.merge(CONVERSATION_ID, {"unknown": 1})

        assert await store.get(CONVERSATION_ID) is None
