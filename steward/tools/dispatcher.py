"""Tool dispatcher - entry point for every assistant tool call.

One call is one turn step:

1. Acquire the conversation's mutex (busy result on timeout)
2. Load the session, or start a fresh one
3. Run the handler against a deep copy of the session
4. Persist the changed fields, or drop the copy, per the outcome:

   - result returned: persist
   - `ValidationFailure`: persist (writes made before the rejection, such
     as a flush, are kept)
   - `GuardViolation` / `ParseFailure`: drop
   - anything else: drop, log, return a "Failed to save ..." message
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from structlog.contextvars import bound_contextvars

from steward.cache.base import Cache
from steward.config.models.storage import MediaStorageConfig
from steward.config.models.workflow import WorkflowConfig
from steward.conversation.models import ConversationSession
from steward.conversation.models.session import utc_now
from steward.conversation.mutex import SessionMutex
from steward.conversation.store import SessionStore
from steward.inspection.coordinator import DeferredWriteCoordinator
from steward.inspection.errors import ValidationFailure, WorkflowError
from steward.inspection.machine import PhaseStateMachine
from steward.inspection.media import MediaUploader
from steward.inspection.repository import InspectionRepository
from steward.inspection.storage import MediaStorage
from steward.observability.logging import get_logger
from steward.tools.context import ToolContext
from steward.tools.handlers import HANDLERS, ToolHandler

logger = get_logger(__name__)

BUSY_MESSAGE = "Still working on your previous message. Please try again in a moment."
DEFAULT_FAILURE = "Something went wrong. Please try again."

FAILURE_MESSAGES: dict[str, str] = {
    "getTodayJobs": "Failed to load today's jobs. Please try again.",
    "collectInspectorInfo": "Failed to verify your details. Please try again.",
    "confirmJobSelection": "Failed to load the job details. Please try again.",
    "startJob": "Failed to start the job. Please try again.",
    "getJobLocations": "Failed to load the locations. Please try again.",
    "getSubLocations": "Failed to load the sub-locations. Please try again.",
    "getTasksForLocation": "Failed to load the tasks. Please try again.",
    "setSubLocationConditions": "Failed to save conditions. Please try again.",
    "setSubLocationCause": "Failed to save cause. Please try again.",
    "setSubLocationResolution": "Failed to save resolution. Please try again.",
    "setSubLocationCauseResolution": "Failed to save cause and resolution. Please try again.",
    "setSubLocationRemarks": "Failed to save remarks. Please try again.",
    "attachMedia": "Failed to save media. Please try sending it again.",
    "completeTask": "Failed to save task progress. Please try again.",
    "markSubLocationComplete": "Failed to complete the sub-location. Please try again.",
    "markLocationComplete": "Failed to complete the location. Please try again.",
    "getTaskMedia": "Failed to load media. Please try again.",
    "interpretReply": DEFAULT_FAILURE,
}


def session_diff(before: ConversationSession, after: ConversationSession) -> dict[str, Any]:
    """Fields of `after` that differ from `before`, ignoring the write stamp."""
    old = before.model_dump()
    return {
        field: value
        for field, value in after.model_dump().items()
        if field != "last_updated_at" and old.get(field) != value
    }


class ToolDispatcher:
    """Runs tool handlers with per-conversation locking and session persistence.

    Turns of one conversation are serialized; different conversations run
    concurrently. `dispatch` never raises: every outcome is a
    `{"success": bool, ...}` result.
    """

    def __init__(
        self,
        session_store: SessionStore,
        repository: InspectionRepository,
        media_storage: MediaStorage,
        cache: Cache,
        mutex: SessionMutex,
        workflow: WorkflowConfig | None = None,
        media: MediaStorageConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        handlers: Mapping[str, ToolHandler] | None = None,
    ) -> None:
        self._sessions = session_store
        self._repository = repository
        self._cache = cache
        self._mutex = mutex
        self._workflow = workflow or WorkflowConfig()
        self._clock = clock
        self._handlers = dict(handlers) if handlers is not None else dict(HANDLERS)
        self._machine = PhaseStateMachine()
        self._coordinator = DeferredWriteCoordinator(repository, self._workflow.write_mode)
        self._uploader = MediaUploader(media_storage, self._workflow, media)

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    async def dispatch(
        self,
        tool_name: str,
        args: Mapping[str, Any] | None,
        conversation_id: str,
    ) -> dict[str, Any]:
        handler = self._handlers.get(tool_name)
        if handler is None:
            logger.warning("tool_not_found", tool_name=tool_name)
            return {"success": False, "error": f"Unknown tool: {tool_name}"}

        with bound_contextvars(conversation_id=conversation_id, tool_name=tool_name):
            try:
                async with self._mutex.acquire(conversation_id) as acquired:
                    if not acquired:
                        return {"success": False, "error": BUSY_MESSAGE, "retryable": True}
                    return await self._run(handler, dict(args or {}), conversation_id)
            except Exception as e:
                logger.error(
                    "tool_execution_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return {
                    "success": False,
                    "error": FAILURE_MESSAGES.get(tool_name, DEFAULT_FAILURE),
                }

    async def _run(
        self,
        handler: ToolHandler,
        args: dict[str, Any],
        conversation_id: str,
    ) -> dict[str, Any]:
        stored = await self._sessions.get(conversation_id)
        original = stored or ConversationSession(conversation_id=conversation_id)
        ctx = ToolContext(
            session=original.model_copy(deep=True),
            repository=self._repository,
            coordinator=self._coordinator,
            machine=self._machine,
            uploader=self._uploader,
            cache=self._cache,
            workflow=self._workflow,
            now=self._clock(),
        )

        try:
            result = await handler(ctx, args)
        except ValidationFailure as e:
            logger.info("tool_rejected", reason="validation", error=e.message)
            await self._persist(conversation_id, stored is None, original, ctx.session)
            return e.to_result()
        except WorkflowError as e:
            logger.info("tool_rejected", reason=type(e).__name__, error=e.message)
            return e.to_result()

        await self._persist(conversation_id, stored is None, original, ctx.session)
        logger.debug("tool_executed", success=result.get("success", True))
        return result

    async def _persist(
        self,
        conversation_id: str,
        is_new: bool,
        before: ConversationSession,
        after: ConversationSession,
    ) -> None:
        diff = session_diff(before, after)
        if diff or is_new:
            await self._sessions.merge(conversation_id, diff)
