"""Bounded parallel upload of inspection media to object storage."""

import asyncio
import mimetypes
import re
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from steward.config.models.storage import MediaStorageConfig
from steward.config.models.workflow import WorkflowConfig
from steward.inspection.enums import MediaType
from steward.inspection.storage import MediaStorage
from steward.observability.logging import get_logger
from steward.observability.side_effects import non_critical

logger = get_logger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


class MediaUploadError(Exception):
    """Every file of a batch failed to upload."""

    def __init__(self, message: str, outcomes: list["UploadOutcome"]) -> None:
        super().__init__(message)
        self.outcomes = outcomes


class MediaFile(BaseModel):
    """One file received with an inspector's message."""

    model_config = ConfigDict(frozen=True)

    content: bytes
    content_type: str
    caption: str | None = None
    filename: str | None = None

    @property
    def media_type(self) -> MediaType:
        return MediaType.from_content_type(self.content_type)


class UploadOutcome(BaseModel):
    """Result of uploading one file; exactly one of `url` / `error` is set."""

    index: int
    key: str
    media_type: MediaType
    caption: str | None = None
    url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.url is not None


def slugify(name: str) -> str:
    slug = _SLUG_STRIP.sub("-", name.casefold()).strip("-")
    return slug or "general"


def extension_for(file: MediaFile) -> str:
    if file.filename and "." in file.filename:
        return file.filename.rsplit(".", 1)[1].lower()
    guessed = mimetypes.guess_extension(file.content_type.split(";")[0].strip())
    if guessed:
        return guessed.lstrip(".")
    return "mp4" if file.media_type is MediaType.VIDEO else "jpg"


class MediaUploader:
    """Uploads a turn's media as one bounded batch.

    At most `media_upload_concurrency` uploads run at once and each is
    capped by `external_call_timeout_seconds`. A failed file never aborts
    its siblings; the caller gets one outcome per file, in input order.
    """

    def __init__(
        self,
        storage: MediaStorage,
        workflow: WorkflowConfig | None = None,
        media: MediaStorageConfig | None = None,
    ) -> None:
        self._storage = storage
        self._workflow = workflow or WorkflowConfig()
        self._media = media or MediaStorageConfig()

    def build_key(self, work_order_id: str, area_name: str, file: MediaFile) -> str:
        folder = "videos" if file.media_type is MediaType.VIDEO else "photos"
        return "/".join(
            [
                self._media.key_prefix.strip("/"),
                work_order_id,
                slugify(area_name),
                folder,
                f"{uuid4().hex}.{extension_for(file)}",
            ]
        )

    async def upload_batch(
        self,
        files: list[MediaFile],
        work_order_id: str,
        area_name: str,
    ) -> list[UploadOutcome]:
        """Upload every file; raise only when none succeeded.

        Raises:
            MediaUploadError: All uploads failed
        """
        semaphore = asyncio.Semaphore(self._workflow.media_upload_concurrency)
        timeout = self._workflow.external_call_timeout_seconds

        async def upload(index: int, file: MediaFile) -> UploadOutcome:
            key = self.build_key(work_order_id, area_name, file)
            async with semaphore:
                url = await asyncio.wait_for(
                    self._storage.put(key, file.content, file.content_type), timeout
                )
            return UploadOutcome(
                index=index,
                key=key,
                media_type=file.media_type,
                caption=file.caption,
                url=url,
            )

        results = await asyncio.gather(
            *(upload(i, f) for i, f in enumerate(files)), return_exceptions=True
        )

        outcomes: list[UploadOutcome] = []
        for index, (file, result) in enumerate(zip(files, results, strict=True)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                error = "timed out" if isinstance(result, TimeoutError) else str(result)
                logger.warning("media_upload_failed", index=index, error=error)
                outcomes.append(
                    UploadOutcome(
                        index=index,
                        key="",
                        media_type=file.media_type,
                        caption=file.caption,
                        error=error,
                    )
                )
            else:
                outcomes.append(result)

        uploaded = sum(1 for o in outcomes if o.ok)
        logger.info(
            "media_batch_uploaded",
            work_order_id=work_order_id,
            uploaded=uploaded,
            failed=len(outcomes) - uploaded,
        )
        if files and uploaded == 0:
            raise MediaUploadError("Failed to upload media. Please try sending it again.", outcomes)
        return outcomes

    async def discard(self, outcomes: list[UploadOutcome]) -> None:
        """Remove uploaded objects that could not be attached to a record."""
        for outcome in outcomes:
            if outcome.ok:
                await non_critical("media_delete", self._storage.delete(outcome.key), key=outcome.key)
