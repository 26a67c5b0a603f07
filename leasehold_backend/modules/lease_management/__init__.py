"""Lease lifecycle: agreements, status transitions and renewals."""

from .models import (
    DepositStatus,
    LeaseAgreement,
    LeaseStatus,
    PaymentCycle,
    PaymentMethod,
    PaymentStatus,
)

__all__ = [
    "DepositStatus",
    "LeaseAgreement",
    "LeaseStatus",
    "PaymentCycle",
    "PaymentMethod",
    "PaymentStatus",
]
