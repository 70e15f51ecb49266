"""Inspection workflow and concurrency configuration."""

from enum import Enum

from pydantic import BaseModel, Field


class WriteMode(str, Enum):
    """When condition, finding and media writes reach the repository."""

    IMMEDIATE = "immediate"
    """Persist every mutation as it arrives."""

    DEFERRED = "deferred"
    """Buffer in the session and flush at the remarks/complete checkpoint."""


class WorkflowConfig(BaseModel):
    """Inspection workflow behaviour."""

    write_mode: WriteMode = Field(
        default=WriteMode.DEFERRED,
        description="Persistence strategy for sub-location runs",
    )
    media_upload_concurrency: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum parallel uploads per media batch",
    )
    external_call_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to each object storage call",
    )
    require_photo_caption: bool = Field(
        default=False,
        description="Reject media batches that carry no caption",
    )
    default_country_code: str = Field(
        default="+65",
        description="Prefix for inspector phone numbers given without one",
    )


class ConcurrencyConfig(BaseModel):
    """Per-conversation turn serialization."""

    lock_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Auto-release for a held lock (crash safety)",
    )
    blocking_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long a turn waits for the lock before giving up",
    )
