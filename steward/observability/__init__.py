"""Observability: structured logging and non-critical side effect handling.

Provides standardized logging primitives using structlog.
"""

from steward.observability.logging import get_logger, setup_logging
from steward.observability.side_effects import non_critical

__all__ = ["get_logger", "non_critical", "setup_logging"]
