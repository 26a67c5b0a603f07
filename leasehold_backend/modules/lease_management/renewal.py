"""
Auto-renewal engine.

A renewal replaces an expiring auto-renew lease with a DRAFT successor that
covers the next billing period. Creating the successor and ending the
original happen in one transaction; the activity entry and the LEASE_EXPIRED
notification follow the commit and may fail without undoing the renewal.
"""

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import AvailabilityConflictError, BusinessLogicError
from ...core.logging import get_logger
from ...core.utils import unit_label
from ..activity_log.models import ActivityType
from ..activity_log.services import ActivityLogData, log_activity
from ..notifications.outbox import dispatch_outbox
from . import crud
from .availability import require_availability
from .dates import auto_renewal_deadline, renewal_period
from .models import LeaseAgreement, LeaseStatus
from .schemas import RenewalPreview
from .state_machine import TransitionReason, describe_lease, transition

logger = get_logger("lease_management.renewal")


def is_eligible_for_renewal(
    lease: LeaseAgreement, now: datetime, has_successor: bool = False
) -> bool:
    """Auto-renew enabled, ACTIVE, notice days set, not yet renewed and the
    notice deadline reached."""
    if not lease.is_auto_renew or lease.status != LeaseStatus.ACTIVE:
        return False
    if lease.auto_renewal_notice_days is None or has_successor:
        return False
    return now >= auto_renewal_deadline(lease.end_date, lease.auto_renewal_notice_days)


async def find_eligible_renewals(
    db: AsyncSession, now: datetime, organization_id: int | None = None
) -> list[LeaseAgreement]:
    candidates = await crud.get_auto_renew_candidates(db, organization_id)
    return [lease for lease in candidates if is_eligible_for_renewal(lease, now)]


async def preview_eligible_renewals(
    db: AsyncSession, organization_id: int, now: datetime
) -> list[RenewalPreview]:
    """Read-only view of what the renewal sweep would do right now."""
    previews = []
    for lease in await find_eligible_renewals(db, now, organization_id):
        period = renewal_period(lease.end_date, lease.payment_cycle)
        previews.append(
            RenewalPreview(
                lease_id=lease.id,
                tenant_name=lease.tenant.full_name,
                unit_name=unit_label(lease.unit.property.name, lease.unit.name),
                end_date=lease.end_date,
                renewal_deadline=auto_renewal_deadline(
                    lease.end_date, lease.auto_renewal_notice_days
                ),
                renewal_start_date=period.start_date,
                renewal_end_date=period.end_date,
            )
        )
    return previews


async def create_renewal(
    db: AsyncSession,
    original: LeaseAgreement,
    *,
    notifier,
    now: datetime,
) -> LeaseAgreement | None:
    """Renew ``original`` (loaded with tenant and unit.property).

    Returns the new DRAFT lease, or None when the unit is no longer free for
    the renewal period. In that case nothing has been written and the caller
    ends the transaction.
    """
    if original.status != LeaseStatus.ACTIVE:
        raise BusinessLogicError(
            f"Only active leases can be renewed (lease is {original.status.name})"
        )
    if await crud.get_successor(db, original.id) is not None:
        raise BusinessLogicError("Lease has already been renewed")

    period = renewal_period(original.end_date, original.payment_cycle)

    try:
        await require_availability(
            db,
            original.unit_id,
            period.start_date,
            period.end_date,
            exclude_lease_id=original.id,
        )
    except AvailabilityConflictError as e:
        logger.info(
            f"Lease {original.id} not renewed: {e.message}",
            extra={"lease_id": original.id, "unit_id": original.unit_id},
        )
        return None

    renewal = await crud.create_lease(
        db,
        organization_id=original.organization_id,
        tenant_id=original.tenant_id,
        unit_id=original.unit_id,
        start_date=period.start_date,
        end_date=period.end_date,
        payment_cycle=original.payment_cycle,
        rent_amount=original.rent_amount,
        deposit_amount=original.deposit_amount,
        grace_period_days=original.grace_period_days,
        is_auto_renew=original.is_auto_renew,
        auto_renewal_notice_days=original.auto_renewal_notice_days,
        status=LeaseStatus.DRAFT,
        renewed_from_id=original.id,
    )
    outcome = await transition(
        db, original, LeaseStatus.ENDED, reason=TransitionReason.RENEWED, now=now
    )
    await db.commit()

    logger.info(
        f"Renewed lease {original.id} as lease {renewal.id}",
        extra={
            "lease_id": original.id,
            "renewal_id": renewal.id,
            "organization_id": original.organization_id,
        },
    )

    await _log_renewal_activity(db, original, renewal)
    await dispatch_outbox(db, notifier, outcome.outbox_ids)
    return renewal


async def _log_renewal_activity(
    db: AsyncSession, original: LeaseAgreement, renewal: LeaseAgreement
) -> None:
    try:
        await log_activity(
            db,
            original.organization_id,
            ActivityLogData(
                type=ActivityType.LEASE_CREATED,
                description=f"Auto-renewed lease for {describe_lease(original)}",
                tenant_id=original.tenant_id,
                property_id=original.unit.property_id,
                unit_id=original.unit_id,
                lease_id=renewal.id,
            ),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            "Failed to record renewal activity", extra={"lease_id": renewal.id}
        )
