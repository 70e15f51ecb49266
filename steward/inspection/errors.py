"""Workflow errors surfaced to the inspector.

Each carries a user-facing message; the dispatcher turns them into
`{"success": False, "error": message, ...}` results. Anything that is not a
`WorkflowError` is an upstream failure.
"""

from typing import Any


class WorkflowError(Exception):
    """Base for rejections the inspector can act on."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_result(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, **self.details}


class GuardViolation(WorkflowError):
    """Operation attempted out of order.

    Raised before any mutation; retrying with the right input is safe.
    """

    pass


class ValidationFailure(WorkflowError):
    """Operation rejected because required evidence or input is missing.

    Raised before the finalizing mutation. Earlier-stage writes made in the
    same call (for example a deferred flush) are kept.
    """

    pass


class ParseFailure(WorkflowError):
    """Free text could not be interpreted."""

    def __init__(self, message: str, allowed: list[str] | None = None, **details: Any) -> None:
        if allowed is not None:
            details["allowed"] = allowed
        super().__init__(message, **details)
