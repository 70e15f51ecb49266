"""Configuration section models."""

from steward.config.models.observability import LoggingConfig, ObservabilityConfig
from steward.config.models.storage import (
    CacheConfig,
    MediaStorageConfig,
    SessionStoreConfig,
    StorageConfig,
)
from steward.config.models.workflow import ConcurrencyConfig, WorkflowConfig, WriteMode

__all__ = [
    "CacheConfig",
    "ConcurrencyConfig",
    "LoggingConfig",
    "MediaStorageConfig",
    "ObservabilityConfig",
    "SessionStoreConfig",
    "StorageConfig",
    "WorkflowConfig",
    "WriteMode",
]
