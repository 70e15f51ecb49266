"""Tests for MediaUploader batch uploads."""

import asyncio
import re

import pytest

from steward.config.models.workflow import WorkflowConfig
from steward.inspection.enums import MediaType
from steward.inspection.media import (
    MediaFile,
    MediaUploader,
    MediaUploadError,
    extension_for,
    slugify,
)
from steward.inspection.storage import InMemoryMediaStorage
from tests.factories.inspection import WORK_ORDER_ID


class FlakyStorage(InMemoryMediaStorage):
    """Fails uploads whose content is b"bad" and stalls on b"slow"."""

    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if data == b"bad":
                raise OSError("bucket rejected object")
            if data == b"slow":
                await asyncio.sleep(1)
            return await super().put(key, data, content_type)
        finally:
            self.in_flight -= 1


def photo(content: bytes = b"jpeg", caption: str | None = None) -> MediaFile:
    return MediaFile(
        content=content, content_type="image/jpeg", caption=caption, filename="sink.JPG"
    )


@pytest.fixture
def storage() -> FlakyStorage:
    return FlakyStorage()


@pytest.fixture
def uploader(storage) -> MediaUploader:
    return MediaUploader(
        storage,
        WorkflowConfig(media_upload_concurrency=2, external_call_timeout_seconds=0.2),
    )


class TestUploadBatch:
    """Tests for MediaUploader.upload_batch."""

    @pytest.mark.asyncio
    async def test_uploads_in_input_order(self, uploader, storage) -> None:
        """Should return one outcome per file in the order given."""
        files = [photo(caption="first"), photo(caption="second")]

        outcomes = await uploader.upload_batch(files, WORK_ORDER_ID, "Kitchen")

        assert [o.caption for o in outcomes] == ["first", "second"]
        assert [o.index for o in outcomes] == [0, 1]
        assert all(o.ok for o in outcomes)
        assert {o.key for o in outcomes} == set(storage.objects)
        assert outcomes[0].url == f"https://media.invalid/{outcomes[0].key}"

    @pytest.mark.asyncio
    async def test_partial_failure(self, uploader, storage) -> None:
        """Should keep the successes when some files fail."""
        outcomes = await uploader.upload_batch(
            [photo(), photo(b"bad"), photo()], WORK_ORDER_ID, "Kitchen"
        )

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[1].error == "bucket rejected object"
        assert outcomes[1].url is None
        assert len(storage.objects) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_a_failure(self, uploader) -> None:
        """Should report a stalled upload as timed out."""
        outcomes = await uploader.upload_batch(
            [photo(b"slow"), photo()], WORK_ORDER_ID, "Kitchen"
        )

        assert outcomes[0].error == "timed out"
        assert outcomes[1].ok

    @pytest.mark.asyncio
    async def test_all_failed_raises(self, uploader) -> None:
        """Should raise with every outcome when nothing uploaded."""
        with pytest.raises(MediaUploadError) as exc_info:
            await uploader.upload_batch([photo(b"bad"), photo(b"bad")], WORK_ORDER_ID, "Kitchen")

        assert len(exc_info.value.outcomes) == 2
        assert not any(o.ok for o in exc_info.value.outcomes)

    @pytest.mark.asyncio
    async def test_empty_batch(self, uploader) -> None:
        assert await uploader.upload_batch([], WORK_ORDER_ID, "Kitchen") == []

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, uploader, storage) -> None:
        """Should never run more uploads at once than configured."""
        await uploader.upload_batch([photo() for _ in range(6)], WORK_ORDER_ID, "Kitchen")

        assert storage.peak == 2
        assert len(storage.objects) == 6


class TestKeys:
    """Tests for object key layout."""

    def test_photo_key(self, uploader) -> None:
        key = uploader.build_key(WORK_ORDER_ID, "Master Bedroom / 2", photo())

        assert re.fullmatch(
            rf"inspections/{WORK_ORDER_ID}/master-bedroom-2/photos/[0-9a-f]{{32}}\.jpg", key
        )

    def test_video_key(self, uploader) -> None:
        clip = MediaFile(content=b"mp4", content_type="video/mp4", filename="clip.MP4")

        key = uploader.build_key(WORK_ORDER_ID, "Kitchen", clip)

        assert clip.media_type is MediaType.VIDEO
        assert key.startswith(f"inspections/{WORK_ORDER_ID}/kitchen/videos/")
        assert key.endswith(".mp4")

    def test_slugify_fallback(self) -> None:
        """Should name unnamed areas 'general'."""
        assert slugify("!!!") == "general"

    def test_extension_fallback(self) -> None:
        """Should fall back by media type when nothing else names an extension."""
        unknown_photo = MediaFile(content=b"x", content_type="image/x-steward-unknown")
        unknown_video = MediaFile(content=b"x", content_type="video/x-steward-unknown")

        assert extension_for(unknown_photo) == "jpg"
        assert extension_for(unknown_video) == "mp4"


class TestDiscard:
    """Tests for MediaUploader.discard."""

    @pytest.mark.asyncio
    async def test_removes_uploaded_objects(self, uploader, storage) -> None:
        """Should delete what was uploaded and skip failures."""
        outcomes = await uploader.upload_batch([photo(), photo(b"bad")], WORK_ORDER_ID, "Kitchen")

        await uploader.discard(outcomes)

        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_delete_failure_tolerated(self, uploader, storage) -> None:
        """Should carry on when the storage cannot delete."""
        outcomes = await uploader.upload_batch([photo(), photo()], WORK_ORDER_ID, "Kitchen")

        async def broken_delete(key: str) -> None:
            raise OSError("gone")

        storage.delete = broken_delete

        await uploader.discard(outcomes)

        assert len(storage.objects) == 2
