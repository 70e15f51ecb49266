"""Test factories for creating test data."""

from tests.factories.inspection import SessionFactory, seed_job

__all__ = [
    "SessionFactory",
    "seed_job",
]
