"""
Typed service errors.

Routers let these propagate; middlewares/error_handler.py turns them into
JSON responses. Bulk operations record them per item instead of raising.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for service-layer errors."""

    error_code = "SERVICE_ERROR"
    status_code = 400

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}


class ValidationError(ServiceError):
    """Malformed input (missing rejection comments, score out of range...)."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class AuthorizationError(ServiceError):
    """Actor's role does not allow the action."""

    error_code = "FORBIDDEN"
    status_code = 403


class NotFoundError(ServiceError):
    error_code = "NOT_FOUND"
    status_code = 404


class StateError(ServiceError):
    """Action attempted on a record whose state no longer allows it."""

    error_code = "INVALID_STATE"
    status_code = 409


class DuplicateError(ServiceError):
    error_code = "DUPLICATE"
    status_code = 409


class ConflictError(ServiceError):
    """Concurrent modification detected."""

    error_code = "CONFLICT"
    status_code = 409


class RepositoryError(ServiceError):
    """Storage failed or timed out."""

    error_code = "REPOSITORY_ERROR"
    status_code = 503
