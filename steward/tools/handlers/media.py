"""Media tools: attach photos/videos to the active run, and read them back."""

import base64
import binascii
from typing import Any

from steward.conversation.models import PendingMedia, TaskFlowStage
from steward.inspection.enums import MediaType
from steward.inspection.errors import ValidationFailure
from steward.inspection.machine import Step
from steward.inspection.media import MediaFile, UploadOutcome
from steward.observability.logging import get_logger
from steward.observability.side_effects import non_critical
from steward.tools.context import ToolContext, text_arg

logger = get_logger(__name__)

CAPTION_REQUIRED = "Please add a caption to your photos describing what they show."


def _decode(content: Any, index: int) -> bytes:
    if isinstance(content, bytes):
        return content
    if isinstance(content, str):
        try:
            return base64.b64decode(content, validate=True)
        except binascii.Error as e:
            raise ValidationFailure(f"Media item {index + 1} could not be read.") from e
    raise ValidationFailure(f"Media item {index + 1} has no content.")


async def _area_name(ctx: ToolContext, item_id: str, sub_location_id: str | None) -> str:
    if sub_location_id:
        sub = await ctx.repository.get_sub_location(sub_location_id)
        if sub is not None:
            return sub.name
    item = await ctx.repository.get_item(item_id)
    return item.name if item else "general"


async def _unattached(ctx: ToolContext, outcomes: list[UploadOutcome]) -> list[UploadOutcome]:
    """Uploads with no row on the run's record; rows already written keep their objects."""
    entry_id = ctx.session.current_task_entry_id
    if entry_id is None or not outcomes:
        return outcomes
    rows = await non_critical(
        "list_attached_media", ctx.repository.list_entry_media(entry_id), entry_id=entry_id
    )
    if rows is None:
        # Rows unknown; keep every object.
        return []
    attached = {row.url for row in rows}
    return [o for o in outcomes if o.url not in attached]


async def attach_media(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Upload the turn's files and attach them to the run's inspection record.

    Items are either already hosted (`url`) or raw `content` (bytes or
    base64). Partial upload failures are reported; the rest still attach.
    """
    work_order_id = ctx.machine.require_job_started(ctx.session)
    ctx.machine.require_step(ctx.session, Step.ATTACH_MEDIA)
    items = args.get("media") or []
    if not isinstance(items, list) or not items:
        raise ValidationFailure("Please send at least one photo or video.")
    if ctx.workflow.require_photo_caption and not any(
        isinstance(i, dict) and text_arg(i, "caption") for i in items
    ):
        raise ValidationFailure(CAPTION_REQUIRED)

    item_id = ctx.session.current_task_item_id or ctx.session.current_location_id
    if item_id is None:
        raise ValidationFailure("Please pick a location before sending media.")
    sub_location_id = ctx.session.current_sub_location_id

    hosted: list[PendingMedia] = []
    files: list[MediaFile] = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationFailure(f"Media item {index + 1} could not be read.")
        content_type = text_arg(raw, "contentType", "mimeType") or "image/jpeg"
        caption = text_arg(raw, "caption") or None
        url = text_arg(raw, "url")
        if url:
            hosted.append(
                PendingMedia(
                    url=url,
                    media_type=MediaType.from_content_type(content_type),
                    caption=caption,
                    task_id=ctx.session.current_task_id,
                    task_item_id=item_id,
                    sub_location_id=sub_location_id,
                )
            )
            continue
        files.append(
            MediaFile(
                content=_decode(raw.get("content"), index),
                content_type=content_type,
                caption=caption,
                filename=text_arg(raw, "filename") or None,
            )
        )

    outcomes: list[UploadOutcome] = []
    if files:
        area = await _area_name(ctx, item_id, sub_location_id)
        outcomes = await ctx.uploader.upload_batch(files, work_order_id, area)
    uploaded = [
        PendingMedia(
            url=outcome.url or "",
            key=outcome.key,
            media_type=outcome.media_type,
            caption=outcome.caption,
            task_id=ctx.session.current_task_id,
            task_item_id=item_id,
            sub_location_id=sub_location_id,
        )
        for outcome in outcomes
        if outcome.ok
    ]

    try:
        attached = await ctx.coordinator.record_media(
            ctx.session, item_id, sub_location_id, hosted + uploaded
        )
    except Exception:
        await ctx.uploader.discard(await _unattached(ctx, outcomes))
        raise

    stage = ctx.machine.record_media(ctx.session)
    failed = [o for o in outcomes if not o.ok]
    total = len(hosted) + len(uploaded)
    logger.info(
        "media_recorded",
        item_id=item_id,
        sub_location_id=sub_location_id,
        attached=len(attached),
        buffered=total - len(attached),
        failed=len(failed),
    )

    message = f"Received {total} media file{'s' if total != 1 else ''}."
    if failed:
        message += f" {len(failed)} could not be uploaded; please resend them."
    if stage is TaskFlowStage.REMARKS:
        message += " Please also enter your remarks."
    else:
        message += " Reply [1] if this is complete, or [2] if you still have more to do."
    return {
        "success": True,
        "uploaded": total,
        "failed": [{"index": o.index, "error": o.error} for o in failed],
        "attached": len(attached),
        "buffered": total - len(attached),
        "taskFlowStage": stage.value,
        "message": message,
    }


async def get_task_media(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Photos, videos and remarks recorded for a task or sub-location."""
    ctx.machine.require_job_started(ctx.session)
    target = (
        text_arg(args, "taskId")
        or ctx.session.current_task_id
        or ctx.session.current_sub_location_id
        or ""
    )
    entries = await ctx.repository.list_entries(task_id=target) if target else []
    if not entries and target:
        entries = await ctx.repository.list_entries(location_id=target)

    photos: list[str] = []
    videos: list[str] = []
    remarks: list[str] = []
    for entry in entries:
        for media in await ctx.repository.list_entry_media(entry.id):
            (videos if media.media_type is MediaType.VIDEO else photos).append(media.url)
        if entry.remarks:
            remarks.append(entry.remarks)
    if not photos and not videos and not remarks:
        raise ValidationFailure("Task not found or no media available.")

    return {
        "success": True,
        "taskId": target,
        "photos": photos,
        "videos": videos,
        "remarks": remarks,
        "photoCount": len(photos),
        "videoCount": len(videos),
    }
