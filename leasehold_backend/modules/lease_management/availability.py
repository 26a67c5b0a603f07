"""
Unit availability checks.

Two kinds of leases block a booking:

* an auto-renewing DRAFT/ACTIVE lease blocks every interval that ends on or
  after its start, because its end keeps moving forward with each renewal;
* any other DRAFT/ACTIVE lease blocks intervals that overlap its own
  (closed interval comparison, touching end/start dates conflict).
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import (
    AvailabilityConflictError,
    NotFoundError,
    ValidationError,
)
from ...core.utils import ensure_utc
from ..property_management import crud as unit_crud
from .models import OCCUPYING_STATUSES, LeaseAgreement

END_BEFORE_START = "End date must be after start date"
AUTO_RENEW_BLOCK = (
    "Unit has an active auto-renewal lease. "
    "The lease must be ended before booking future dates."
)
OVERLAP = "Unit already has an overlapping lease for these dates"


@dataclass(frozen=True)
class AvailabilityResult:
    valid: bool
    reason: str | None = None


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    return a_start <= b_end and a_end >= b_start


def _occupying_on_unit(unit_id: int, exclude_lease_id: int | None):
    conditions = [
        LeaseAgreement.unit_id == unit_id,
        LeaseAgreement.status.in_(OCCUPYING_STATUSES),
    ]
    if exclude_lease_id is not None:
        conditions.append(LeaseAgreement.id != exclude_lease_id)
    return conditions


async def check_availability(
    db: AsyncSession,
    unit_id: int,
    start_date: datetime,
    end_date: datetime,
    exclude_lease_id: int | None = None,
) -> AvailabilityResult:
    """Check whether ``[start_date, end_date]`` can be booked on the unit."""
    start_date = ensure_utc(start_date)
    end_date = ensure_utc(end_date)

    if start_date >= end_date:
        return AvailabilityResult(valid=False, reason=END_BEFORE_START)

    occupying = _occupying_on_unit(unit_id, exclude_lease_id)

    result = await db.execute(
        select(LeaseAgreement.id)
        .where(
            and_(
                *occupying,
                LeaseAgreement.is_auto_renew.is_(True),
                LeaseAgreement.start_date <= end_date,
            )
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        return AvailabilityResult(valid=False, reason=AUTO_RENEW_BLOCK)

    result = await db.execute(
        select(LeaseAgreement.id)
        .where(
            and_(
                *occupying,
                LeaseAgreement.is_auto_renew.is_(False),
                LeaseAgreement.start_date <= end_date,
                LeaseAgreement.end_date >= start_date,
            )
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        return AvailabilityResult(valid=False, reason=OVERLAP)

    return AvailabilityResult(valid=True)


async def require_availability(
    db: AsyncSession,
    unit_id: int,
    start_date: datetime,
    end_date: datetime,
    exclude_lease_id: int | None = None,
) -> None:
    """Lock the unit, then check availability; raise on conflict.

    The lock is held until the caller's transaction ends, so the check
    stays valid up to the commit.
    """
    unit = await unit_crud.lock_unit(db, unit_id)
    if unit is None:
        raise NotFoundError(f"Unit with ID {unit_id} not found")

    availability = await check_availability(
        db, unit_id, start_date, end_date, exclude_lease_id=exclude_lease_id
    )
    if availability.reason == END_BEFORE_START:
        raise ValidationError(END_BEFORE_START)
    if not availability.valid:
        raise AvailabilityConflictError(availability.reason, unit_id=unit_id)


async def find_future_lease(
    db: AsyncSession, lease: LeaseAgreement
) -> LeaseAgreement | None:
    """The earliest DRAFT/ACTIVE lease on the same unit starting after ``lease`` ends."""
    result = await db.execute(
        select(LeaseAgreement)
        .where(
            and_(
                *_occupying_on_unit(lease.unit_id, lease.id),
                LeaseAgreement.start_date > lease.end_date,
            )
        )
        .order_by(LeaseAgreement.start_date)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def has_future_lease(db: AsyncSession, lease: LeaseAgreement) -> bool:
    return await find_future_lease(db, lease) is not None
