"""Non-critical side effects.

Some operations around a turn (cache invalidation, deleting an orphaned
media object) may fail without affecting the outcome the inspector sees.
They run through `non_critical`, which logs the failure and carries on.
Anything not wrapped is critical and propagates to the dispatcher.
"""

from collections.abc import Awaitable
from typing import TypeVar

from steward.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def non_critical(
    operation: str,
    awaitable: Awaitable[T],
    default: T | None = None,
    **context: object,
) -> T | None:
    """Await a side effect whose failure must not fail the turn.

    Args:
        operation: Event-style name used in the warning log
        awaitable: The side effect to run
        default: Value returned when the side effect raises
        **context: Extra key/values bound to the warning

    Returns:
        The awaited result, or `default` on failure
    """
    try:
        return await awaitable
    except Exception as e:  # noqa: BLE001
        logger.warning(
            "non_critical_side_effect_failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
            **context,
        )
        return default
