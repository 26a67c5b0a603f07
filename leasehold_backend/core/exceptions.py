"""
Custom exception classes for consistent error handling across all modules.
"""

from typing import Any


class LeaseholdException(Exception):
    """Base exception for all Leasehold related errors."""

    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(LeaseholdException):
    """Raised when a resource is not found."""

    status_code = 404

    def __init__(
        self, message: str = "Resource not found", details: dict[str, Any] | None = None
    ):
        super().__init__(message, details)


class ValidationError(LeaseholdException):
    """Raised when data validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        details: dict[str, Any] | None = None,
    ):
        if field:
            full_message = f"Validation error for field '{field}': {message}"
        else:
            full_message = message
        super().__init__(full_message, details)
        self.field = field
        self.value = value


class BusinessLogicError(LeaseholdException):
    """Raised when business logic constraints are violated."""

    pass


class InvalidTransitionError(BusinessLogicError):
    """Raised when a lease status change is not allowed by the state machine."""

    def __init__(
        self,
        current_status: Any,
        requested_status: Any,
        message: str | None = None,
    ):
        current = getattr(current_status, "name", current_status)
        requested = getattr(requested_status, "name", requested_status)
        super().__init__(
            message or f"Invalid status transition from {current} to {requested}",
            {"current_status": current, "requested_status": requested},
        )
        self.current_status = current_status
        self.requested_status = requested_status


class AvailabilityConflictError(BusinessLogicError):
    """Raised when a unit is already booked for the requested dates."""

    def __init__(self, message: str, unit_id: int | None = None):
        super().__init__(message, {"unit_id": unit_id} if unit_id else None)
        self.unit_id = unit_id


class AuthenticationError(LeaseholdException):
    """Raised when authentication fails."""

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication failed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)


class ExternalServiceError(LeaseholdException):
    """Raised when a collaborator (notification channel, gateway) fails."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        operation: str,
        details: dict[str, Any] | None = None,
    ):
        message = f"External service '{service_name}' failed during '{operation}'"
        super().__init__(message, details)
        self.service_name = service_name
        self.operation = operation
