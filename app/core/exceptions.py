"""Custom exception hierarchy."""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class NotFoundError(AppError):
    """Raised when a finding or template does not exist or is not visible to the tenant."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(AppError):
    """Raised when input validation fails.

    ``errors`` holds one entry per offending field, in the shape pydantic
    reports them (``loc``, ``msg``, ``type``).
    """
    def __init__(
        self,
        message: str,
        errors: Optional[list[dict[str, Any]]] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.errors = errors or []


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass
