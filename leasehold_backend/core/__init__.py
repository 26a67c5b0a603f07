"""Core infrastructure for the Leasehold backend."""

from .database_types import UUID, UTCDateTime
from .exceptions import (
    AuthenticationError,
    AvailabilityConflictError,
    BusinessLogicError,
    ExternalServiceError,
    InvalidTransitionError,
    LeaseholdException,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "UUID",
    "UTCDateTime",
    "LeaseholdException",
    "NotFoundError",
    "ValidationError",
    "BusinessLogicError",
    "InvalidTransitionError",
    "AvailabilityConflictError",
    "AuthenticationError",
    "ExternalServiceError",
]
