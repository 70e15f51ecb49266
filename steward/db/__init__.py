"""Shared persistence primitives."""

from steward.db.errors import (
    ConnectionError,
    NotFoundError,
    SerializationError,
    StoreError,
)

__all__ = [
    "ConnectionError",
    "NotFoundError",
    "SerializationError",
    "StoreError",
]
