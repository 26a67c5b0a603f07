"""Lease management schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ...core.utils import ensure_utc
from ..activity_log.models import ActivityType
from ..tenant_management.models import TenantStatus
from .models import (
    DepositStatus,
    LeaseStatus,
    PaymentCycle,
    PaymentMethod,
    PaymentStatus,
)


def _to_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


# ----- Nested summaries -----


class TenantSummary(BaseModel):
    id: int
    full_name: str
    status: TenantStatus

    class Config:
        from_attributes = True


class PropertySummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class UnitSummary(BaseModel):
    id: int
    name: str
    property: PropertySummary

    class Config:
        from_attributes = True


# ----- Lease Schemas -----


class LeaseCreate(BaseModel):
    """Schema for creating a lease. New leases always start as DRAFT."""

    tenant_id: int
    unit_id: int
    start_date: datetime
    end_date: datetime
    payment_cycle: PaymentCycle
    rent_amount: Decimal = Field(..., ge=0)
    deposit_amount: Decimal | None = Field(None, ge=0)
    is_auto_renew: bool = False
    grace_period_days: int | None = Field(None, ge=0)
    auto_renewal_notice_days: int | None = Field(None, ge=1)
    notes: str | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_in_utc(cls, v):
        return _to_utc(v)


class LeaseUpdate(BaseModel):
    """Partial update. Only fields present in the request are applied.

    Sending ``paid_at: null`` clears the payment; omitting it leaves the
    payment untouched.
    """

    start_date: datetime | None = None
    end_date: datetime | None = None
    payment_cycle: PaymentCycle | None = None
    rent_amount: Decimal | None = Field(None, ge=0)
    deposit_amount: Decimal | None = Field(None, ge=0)
    deposit_status: DepositStatus | None = None
    status: LeaseStatus | None = None
    paid_at: datetime | None = None
    payment_method: PaymentMethod | None = None
    is_auto_renew: bool | None = None
    grace_period_days: int | None = Field(None, ge=0)
    auto_renewal_notice_days: int | None = Field(None, ge=1)
    notes: str | None = None

    @field_validator("start_date", "end_date", "paid_at")
    @classmethod
    def dates_in_utc(cls, v):
        return _to_utc(v)


class PaymentRecord(BaseModel):
    """Mark a lease as paid. ``paid_at`` defaults to the time of the request."""

    paid_at: datetime | None = None
    payment_method: PaymentMethod | None = PaymentMethod.MANUAL

    @field_validator("paid_at")
    @classmethod
    def paid_at_in_utc(cls, v):
        return _to_utc(v)


class LeaseResponse(BaseModel):
    id: int
    uuid: UUID
    organization_id: int
    tenant_id: int
    unit_id: int
    start_date: datetime
    end_date: datetime
    payment_cycle: PaymentCycle
    rent_amount: Decimal
    deposit_amount: Decimal | None = None
    deposit_status: DepositStatus
    status: LeaseStatus
    paid_at: datetime | None = None
    payment_status: PaymentStatus
    payment_method: PaymentMethod | None = None
    is_auto_renew: bool
    grace_period_days: int | None = None
    auto_renewal_notice_days: int | None = None
    renewed_from_id: int | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LeaseWithDetails(LeaseResponse):
    tenant: TenantSummary
    unit: UnitSummary


class FutureLeaseCheck(BaseModel):
    has_future_lease: bool
    future_lease: LeaseResponse | None = None


class ActivityResponse(BaseModel):
    id: int
    type: ActivityType
    description: str
    actor_id: int | None = None
    lease_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


# ----- Renewal Schemas -----


class RenewalPreview(BaseModel):
    """A lease the renewal sweep would renew if it ran now."""

    lease_id: int
    tenant_name: str
    unit_name: str
    end_date: datetime
    renewal_deadline: datetime
    renewal_start_date: datetime
    renewal_end_date: datetime
