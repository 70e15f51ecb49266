"""Retrying a tool after an upstream failure must not duplicate records."""

from typing import Any

import pytest

from steward.db.errors import ConnectionError as StoreConnectionError
from steward.inspection.enums import ItemStatus
from steward.inspection.models import ChecklistLocation
from steward.inspection.stores import InMemoryInspectionRepository
from tests.factories.inspection import CONVERSATION_ID, KITCHEN_ID, SINK_ID, seed_job


class DroppedConnectionRepository(InMemoryInspectionRepository):
    """Fails the first sub-location update, after the buffered writes have landed."""

    def __init__(self) -> None:
        super().__init__()
        self.failures_left = 1

    async def update_sub_location(self, location: ChecklistLocation) -> ChecklistLocation:
        if self.failures_left:
            self.failures_left -= 1
            raise StoreConnectionError("connection reset")
        return await super().update_sub_location(location)


@pytest.fixture
def repository() -> DroppedConnectionRepository:
    repository = DroppedConnectionRepository()
    seed_job(repository)
    return repository


async def call(dispatcher, tool_name: str, **args: Any) -> dict[str, Any]:
    return await dispatcher.dispatch(tool_name, args, CONVERSATION_ID)


class TestRetryAfterUpstreamFailure:
    """Tests for repeating markSubLocationComplete after it failed midway."""

    @pytest.mark.asyncio
    async def test_retry_reuses_record_and_media(self, started_dispatcher, repository) -> None:
        """Should finish on retry with one record and one media row."""
        await call(
            started_dispatcher,
            "getTasksForLocation",
            contractChecklistItemId=KITCHEN_ID,
            subLocationId=SINK_ID,
        )
        await call(started_dispatcher, "setSubLocationConditions", conditionsText="1 Good, 2 Good")
        await call(
            started_dispatcher,
            "attachMedia",
            media=[{"url": "https://cdn.example.com/sink.jpg"}],
        )

        failed = await call(started_dispatcher, "markSubLocationComplete")
        retried = await call(started_dispatcher, "markSubLocationComplete")

        assert failed["success"] is False
        assert retried["success"] is True
        entries = await repository.list_entries()
        assert len(entries) == 1
        media = await repository.list_entry_media(entries[0].id)
        assert [m.url for m in media] == ["https://cdn.example.com/sink.jpg"]
        assert (await repository.get_sub_location(SINK_ID)).status is ItemStatus.COMPLETED
