"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "redis"]


class SessionStoreConfig(BaseModel):
    """Conversation session store.

    Every write refreshes the TTL, so an idle conversation expires
    `ttl_seconds` after its last turn.
    """

    backend: BackendType = Field(default="inmemory", description="Backend type")
    connection_url: str | None = Field(
        default=None,
        description="Redis URL when backend is redis",
    )
    ttl_seconds: int = Field(
        default=86400,
        gt=0,
        description="Session time-to-live after the last write (seconds)",
    )
    key_prefix: str = Field(
        default="steward:session",
        description="Key namespace for session records",
    )


class CacheConfig(BaseModel):
    """Read-through cache for job and location listings."""

    backend: BackendType = Field(default="inmemory", description="Backend type")
    connection_url: str | None = Field(
        default=None,
        description="Redis URL when backend is redis",
    )
    ttl_seconds: int = Field(default=300, gt=0, description="Entry TTL (seconds)")
    max_entries: int = Field(
        default=1024,
        gt=0,
        description="LRU bound for the in-memory backend",
    )
    key_prefix: str = Field(default="steward:cache", description="Key namespace")


class MediaStorageConfig(BaseModel):
    """Object storage for inspection photos and videos."""

    key_prefix: str = Field(
        default="inspections",
        description="Leading path segment for uploaded objects",
    )
    public_url: str = Field(
        default="https://media.invalid",
        description="Base URL objects are served from",
    )


class StorageConfig(BaseModel):
    """Configuration for all storage backends."""

    session: SessionStoreConfig = Field(default_factory=SessionStoreConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    media: MediaStorageConfig = Field(default_factory=MediaStorageConfig)
