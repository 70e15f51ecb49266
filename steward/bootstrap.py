"""Build a ready-to-use ToolDispatcher from configuration.

Handles:
- Loading settings (TOML files + STEWARD_* environment)
- Configuring structured logging
- Creating the session store, cache and mutex for the configured backends

The inspection repository and media storage belong to the host
application and are passed in.

Example usage:

    from steward.bootstrap import bootstrap

    dispatcher = bootstrap(repository, media_storage)
    result = await dispatcher.dispatch("getTodayJobs", {}, "+6591234567")
"""

import redis.asyncio as redis

from steward.cache import Cache, InMemoryCache, RedisCache
from steward.config import Settings, get_settings
from steward.conversation.mutex import InMemorySessionMutex, RedisSessionMutex, SessionMutex
from steward.conversation.store import SessionStore
from steward.conversation.stores import InMemorySessionStore, RedisSessionStore
from steward.inspection.repository import InspectionRepository
from steward.inspection.storage import MediaStorage
from steward.observability.logging import get_logger, setup_logging
from steward.tools.dispatcher import ToolDispatcher

logger = get_logger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def _session_backend(settings: Settings) -> tuple[SessionStore, SessionMutex]:
    config = settings.storage.session
    if config.backend == "redis":
        client = redis.from_url(config.connection_url or DEFAULT_REDIS_URL)
        return RedisSessionStore(client, config), RedisSessionMutex(
            client,
            lock_timeout=settings.concurrency.lock_timeout_seconds,
            blocking_timeout=settings.concurrency.blocking_timeout_seconds,
            key_prefix=config.key_prefix,
        )
    return InMemorySessionStore(ttl_seconds=config.ttl_seconds), InMemorySessionMutex(
        blocking_timeout=settings.concurrency.blocking_timeout_seconds
    )


def _cache_backend(settings: Settings) -> Cache:
    config = settings.storage.cache
    if config.backend == "redis":
        return RedisCache(redis.from_url(config.connection_url or DEFAULT_REDIS_URL), config)
    return InMemoryCache(ttl_seconds=config.ttl_seconds, max_entries=config.max_entries)


def bootstrap(
    repository: InspectionRepository,
    media_storage: MediaStorage,
    settings: Settings | None = None,
) -> ToolDispatcher:
    """Create a dispatcher wired to the configured backends.

    Args:
        repository: Data access for inspection records
        media_storage: Object storage for photos and videos
        settings: Settings to use (default: `get_settings()`)

    Returns:
        ToolDispatcher ready to handle tool calls
    """
    settings = settings or get_settings()
    logging_config = settings.observability.logging
    setup_logging(
        level=logging_config.level,
        format=logging_config.format,
        redact_pii=logging_config.redact_pii,
    )

    session_store, mutex = _session_backend(settings)
    dispatcher = ToolDispatcher(
        session_store=session_store,
        repository=repository,
        media_storage=media_storage,
        cache=_cache_backend(settings),
        mutex=mutex,
        workflow=settings.workflow,
        media=settings.storage.media,
    )
    logger.info(
        "dispatcher_ready",
        session_backend=settings.storage.session.backend,
        cache_backend=settings.storage.cache.backend,
        write_mode=settings.workflow.write_mode.value,
    )
    return dispatcher
