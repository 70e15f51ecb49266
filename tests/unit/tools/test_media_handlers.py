"""Tests for attachMedia."""

import base64
from typing import Any

import pytest

from steward.config.models.workflow import WorkflowConfig
from steward.conversation.mutex import InMemorySessionMutex
from steward.inspection.models import ItemEntryMedia
from steward.inspection.stores import InMemoryInspectionRepository
from steward.tools.dispatcher import ToolDispatcher
from steward.tools.handlers.media import CAPTION_REQUIRED
from tests.factories.inspection import (
    CONVERSATION_ID,
    KITCHEN_ID,
    NOW,
    SINK_ID,
    WORK_ORDER_ID,
    seed_job,
)


async def call(dispatcher, tool_name: str, **args: Any) -> dict[str, Any]:
    return await dispatcher.dispatch(tool_name, args, CONVERSATION_ID)


async def started(dispatcher: ToolDispatcher) -> ToolDispatcher:
    for tool_name, args in [
        ("collectInspectorInfo", {"name": "Alex Tan", "phone": "9123 4567"}),
        ("getTodayJobs", {}),
        ("confirmJobSelection", {"jobId": WORK_ORDER_ID}),
        ("startJob", {}),
    ]:
        result = await call(dispatcher, tool_name, **args)
        assert result["success"], result
    return dispatcher


async def to_remarks(dispatcher) -> None:
    await call(
        dispatcher,
        "getTasksForLocation",
        contractChecklistItemId=KITCHEN_ID,
        subLocationId=SINK_ID,
    )
    await call(dispatcher, "setSubLocationConditions", conditionsText="Good Good")


class TestAttachMedia:
    """Tests for the attachMedia tool."""

    @pytest.mark.asyncio
    async def test_buffered_before_remarks(self, started_dispatcher, session_store) -> None:
        """Should hold media in the session until the run has a record."""
        await to_remarks(started_dispatcher)

        result = await call(
            started_dispatcher,
            "attachMedia",
            media=[{"url": "https://cdn.example.com/sink.jpg"}],
        )

        assert result["success"] is True
        assert result["attached"] == 0
        assert result["buffered"] == 1
        assert result["taskFlowStage"] == "remarks"
        assert "enter your remarks" in result["message"]
        session = await session_store.get(CONVERSATION_ID)
        assert [m.url for m in session.pending_media_uploads] == [
            "https://cdn.example.com/sink.jpg"
        ]

    @pytest.mark.asyncio
    async def test_raw_content_uploaded(
        self, started_dispatcher, session_store, media_storage
    ) -> None:
        """Should upload base64 content under the work order's prefix."""
        await to_remarks(started_dispatcher)
        content = base64.b64encode(b"jpeg-bytes").decode()

        result = await call(
            started_dispatcher,
            "attachMedia",
            media=[{"content": content, "contentType": "image/jpeg", "caption": "Sink"}],
        )

        assert result["uploaded"] == 1
        assert result["failed"] == []
        [(key, (data, content_type))] = media_storage.objects.items()
        assert key.startswith("inspections/wo-1/sink-area/photos/")
        assert data == b"jpeg-bytes"
        assert content_type == "image/jpeg"
        session = await session_store.get(CONVERSATION_ID)
        assert session.pending_media_uploads[0].key == key
        assert session.pending_media_uploads[0].caption == "Sink"

    @pytest.mark.asyncio
    async def test_unreadable_content(self, started_dispatcher) -> None:
        """Should reject content that is not valid base64."""
        await to_remarks(started_dispatcher)

        result = await call(started_dispatcher, "attachMedia", media=[{"content": "!!not b64!!"}])

        assert result == {"success": False, "error": "Media item 1 could not be read."}

    @pytest.mark.asyncio
    async def test_empty_batch(self, started_dispatcher) -> None:
        """Should ask for at least one file."""
        await to_remarks(started_dispatcher)

        result = await call(started_dispatcher, "attachMedia", media=[])

        assert result == {"success": False, "error": "Please send at least one photo or video."}

    @pytest.mark.asyncio
    async def test_before_conditions_rejected(self, started_dispatcher) -> None:
        """Should refuse media while the run still needs its conditions."""
        await call(
            started_dispatcher,
            "getTasksForLocation",
            contractChecklistItemId=KITCHEN_ID,
            subLocationId=SINK_ID,
        )

        result = await call(
            started_dispatcher,
            "attachMedia",
            media=[{"url": "https://cdn.example.com/sink.jpg"}],
        )

        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_caption_required(
        self, session_store, repository, media_storage, cache
    ) -> None:
        """Should require a caption when the deployment asks for one."""
        dispatcher = await started(
            ToolDispatcher(
                session_store=session_store,
                repository=repository,
                media_storage=media_storage,
                cache=cache,
                mutex=InMemorySessionMutex(blocking_timeout=1.0),
                workflow=WorkflowConfig(require_photo_caption=True),
                clock=lambda: NOW,
            )
        )
        await to_remarks(dispatcher)

        result = await call(
            dispatcher, "attachMedia", media=[{"url": "https://cdn.example.com/sink.jpg"}]
        )

        assert result == {"success": False, "error": CAPTION_REQUIRED}

    @pytest.mark.asyncio
    async def test_failed_attach_keeps_attached_objects(
        self, session_store, media_storage, cache
    ) -> None:
        """Should delete only uploads that never got a row when attaching fails midway."""

        class SecondAttachFails(InMemoryInspectionRepository):
            attaches = 0

            async def add_entry_media(self, media: ItemEntryMedia) -> ItemEntryMedia:
                self.attaches += 1
                if self.attaches == 2:
                    raise RuntimeError("database unavailable")
                return await super().add_entry_media(media)

        repository = SecondAttachFails()
        seed_job(repository)
        dispatcher = await started(
            ToolDispatcher(
                session_store=session_store,
                repository=repository,
                media_storage=media_storage,
                cache=cache,
                mutex=InMemorySessionMutex(blocking_timeout=1.0),
                clock=lambda: NOW,
            )
        )
        await to_remarks(dispatcher)
        remarks = await call(dispatcher, "setSubLocationRemarks", remarks="checked")

        result = await call(
            dispatcher,
            "attachMedia",
            media=[
                {"content": base64.b64encode(b"first").decode(), "contentType": "image/jpeg"},
                {"content": base64.b64encode(b"second").decode(), "contentType": "image/jpeg"},
            ],
        )

        assert result["success"] is False
        [row] = await repository.list_entry_media(remarks["entryId"])
        [(key, (data, _))] = media_storage.objects.items()
        assert row.url.endswith(key)
        assert data == b"first"
