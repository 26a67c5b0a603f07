"""Common schemas shared across modules."""

from .schemas import BaseResponse, PaginatedResponse

__all__ = [
    "BaseResponse",
    "PaginatedResponse",
]
