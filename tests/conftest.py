"""Shared test fixtures for the Steward test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
import structlog

from steward.cache import InMemoryCache
from steward.config.models.workflow import WorkflowConfig, WriteMode
from steward.conversation.mutex import InMemorySessionMutex
from steward.conversation.stores import InMemorySessionStore
from steward.inspection.coordinator import DeferredWriteCoordinator
from steward.inspection.storage import InMemoryMediaStorage
from steward.inspection.stores import InMemoryInspectionRepository
from steward.tools.dispatcher import ToolDispatcher
from tests.factories.inspection import CONVERSATION_ID, NOW, WORK_ORDER_ID, seed_job


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"STEWARD_DEBUG": "true"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from steward.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Restore structlog defaults so one test's logging config can't leak into another."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Inspection fixtures
# =============================================================================


@pytest.fixture
def repository() -> InMemoryInspectionRepository:
    repository = InMemoryInspectionRepository()
    seed_job(repository)
    return repository


@pytest.fixture
def media_storage() -> InMemoryMediaStorage:
    return InMemoryMediaStorage()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def coordinator(repository: InMemoryInspectionRepository) -> DeferredWriteCoordinator:
    return DeferredWriteCoordinator(repository, WriteMode.DEFERRED)


@pytest.fixture
def dispatcher(
    session_store: InMemorySessionStore,
    repository: InMemoryInspectionRepository,
    media_storage: InMemoryMediaStorage,
    cache: InMemoryCache,
) -> ToolDispatcher:
    return ToolDispatcher(
        session_store=session_store,
        repository=repository,
        media_storage=media_storage,
        cache=cache,
        mutex=InMemorySessionMutex(blocking_timeout=1.0),
        workflow=WorkflowConfig(),
        clock=lambda: NOW,
    )


@pytest_asyncio.fixture
async def started_dispatcher(dispatcher: ToolDispatcher) -> ToolDispatcher:
    """Dispatcher whose conversation has identified the inspector and started the job."""
    steps = [
        ("collectInspectorInfo", {"name": "Alex Tan", "phone": "9123 4567"}),
        ("getTodayJobs", {}),
        ("confirmJobSelection", {"jobId": WORK_ORDER_ID}),
        ("startJob", {}),
    ]
    for tool_name, args in steps:
        result = await dispatcher.dispatch(tool_name, args, CONVERSATION_ID)
        assert result["success"], result
    return dispatcher
