"""InspectionRepository implementations."""

from steward.inspection.stores.inmemory import InMemoryInspectionRepository

__all__ = ["InMemoryInspectionRepository"]
