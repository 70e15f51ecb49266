"""Store error hierarchy for collaborator backends.

Session store, cache and repository implementations wrap backend-specific
errors in one of these so the dispatcher can treat them uniformly as
upstream failures.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when a backend cannot be reached.

    Examples:
        - Redis server unavailable
        - Database connection timeout
    """

    pass


class NotFoundError(StoreError):
    """Raised when a specific record lookup by id fails.

    Not raised for empty list results.
    """

    pass


class SerializationError(StoreError):
    """Raised when a stored payload cannot be decoded into its model."""

    pass
