"""
Date arithmetic for leases.

All functions are pure and take ``now`` explicitly. Datetimes are aware UTC;
day offsets are calendar days in UTC, which has no DST, so "N calendar days"
and "N x 24 hours" coincide.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from ...core.utils import ensure_utc
from .models import PaymentCycle


@dataclass(frozen=True)
class RenewalPeriod:
    start_date: datetime
    end_date: datetime


def start_of_day(value: datetime) -> datetime:
    """Midnight UTC of the given instant's day."""
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def grace_period_deadline(start_date: datetime, grace_period_days: int) -> datetime:
    """Start date plus the grace days, keeping the start's time of day."""
    return ensure_utc(start_date) + timedelta(days=grace_period_days)


def is_overdue(
    start_date: datetime, grace_period_days: int | None, now: datetime
) -> bool:
    """True once ``now`` is strictly past the grace deadline.

    A lease without a grace period is never overdue.
    """
    if grace_period_days is None:
        return False
    return ensure_utc(now) > grace_period_deadline(start_date, grace_period_days)


def auto_renewal_deadline(end_date: datetime, notice_days: int) -> datetime:
    return ensure_utc(end_date) - timedelta(days=notice_days)


def can_change_auto_renewal(
    end_date: datetime, notice_days: int | None, now: datetime
) -> bool:
    """Whether auto-renewal settings may still be edited.

    Without notice days there is no deadline, so edits are always allowed.
    """
    if not notice_days:
        return True
    return ensure_utc(now) < auto_renewal_deadline(end_date, notice_days)


def renewal_period(original_end_date: datetime, payment_cycle: PaymentCycle) -> RenewalPeriod:
    """One billing period starting the day after the original lease ends.

    Month and year steps clamp to the end of shorter months, so a period
    starting Feb 1 ends on the last day of February and one starting Jan 31
    runs to Feb 27 (or 28 in a leap year).
    """
    start = ensure_utc(original_end_date) + timedelta(days=1)

    if payment_cycle == PaymentCycle.DAILY:
        end = start + timedelta(days=1)
    elif payment_cycle == PaymentCycle.MONTHLY:
        end = start + relativedelta(months=1) - timedelta(days=1)
    elif payment_cycle == PaymentCycle.ANNUAL:
        end = start + relativedelta(years=1) - timedelta(days=1)
    else:
        raise ValueError(f"Unsupported payment cycle: {payment_cycle}")

    return RenewalPeriod(start_date=start, end_date=end)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value


def is_payment_due_on(
    lease_start: date | datetime,
    payment_cycle: PaymentCycle,
    target_date: date | datetime,
) -> bool:
    """Whether a payment falls due on ``target_date`` (day granularity).

    MONTHLY leases are due on the start's day of month, moved to the last
    day of shorter months. ANNUAL leases are due on the start's anniversary
    (Feb 29 falls on Feb 28 in common years).
    """
    start = _as_date(lease_start)
    target = _as_date(target_date)

    if target < start:
        return False

    if payment_cycle == PaymentCycle.DAILY:
        return True

    last_day = calendar.monthrange(target.year, target.month)[1]
    due_day = min(start.day, last_day)

    if payment_cycle == PaymentCycle.MONTHLY:
        return target.day == due_day
    if payment_cycle == PaymentCycle.ANNUAL:
        return target.month == start.month and target.day == due_day
    raise ValueError(f"Unsupported payment cycle: {payment_cycle}")
