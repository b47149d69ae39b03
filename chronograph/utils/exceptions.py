"""
Custom exception hierarchy for ChronoGraph.

Provides structured error types for better error handling and debugging.
All exceptions inherit from ChronoGraphError for easy catching.
"""


class ChronoGraphError(Exception):
    """
    Base exception for all ChronoGraph errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize ChronoGraph error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(ChronoGraphError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    pass


class GraphStoreError(StoreError):
    """
    Graph store operation errors.
    Raised when a graph database operation fails for a non-recoverable reason.
    """

    pass


class TransientStoreError(StoreError):
    """
    Recoverable storage I/O failures (locked database, busy, I/O hiccup).
    Callers may retry; mutations are never partially applied.
    """

    pass


class ValidationError(ChronoGraphError):
    """
    Validation errors.
    Raised when input validation fails (missing field, unknown enum value).
    """

    pass


class NotFoundError(ChronoGraphError):
    """
    Resource not found errors.
    Raised when a referenced node, edge or event doesn't exist or is soft-deleted.
    """

    pass


class AuthorizationError(ChronoGraphError):
    """
    Ownership errors.
    Raised when an entity exists but belongs to a different user.
    """

    pass


class ConfigurationError(ChronoGraphError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass
