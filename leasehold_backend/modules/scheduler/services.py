"""
Scheduled lease sweeps.

Every sweep re-derives eligibility from the current rows, so running one
twice in a row is harmless. Candidates are read first as plain values; each
lease is then re-read under a row lock and handled in its own transaction.
A failure on one lease is rolled back, logged and reported in the summary
while the sweep moves on to the next lease.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.logging import get_logger, job_context
from ...core.utils import unit_label
from ..lease_management import crud as lease_crud
from ..lease_management.dates import is_overdue, is_payment_due_on, start_of_day
from ..lease_management.models import LeaseAgreement, LeaseStatus
from ..lease_management.renewal import (
    create_renewal,
    find_eligible_renewals,
    is_eligible_for_renewal,
)
from ..lease_management.state_machine import TransitionReason, transition
from ..notifications import crud as notification_crud
from ..notifications.models import NotificationTrigger
from ..notifications.outbox import dispatch_outbox, dispatch_pending
from ..notifications.schemas import NotificationResult
from .schemas import (
    CancelUnpaidSummary,
    ExpireSummary,
    NotificationSweepSummary,
    OrganizationNotifications,
    RenewalSummary,
    SweepDetail,
    TriggerNotifications,
)

logger = get_logger("scheduler")

UNIT_NOT_AVAILABLE = "Unit not available for renewal"

# Returned by a step when the lease no longer qualifies
SKIPPED = "skipped"


@dataclass(frozen=True)
class LeaseCandidate:
    """What a sweep needs to know about a lease after its session is reset."""

    id: int
    organization_id: int
    tenant_name: str
    unit_name: str

    @classmethod
    def from_lease(cls, lease: LeaseAgreement) -> "LeaseCandidate":
        return cls(
            id=lease.id,
            organization_id=lease.organization_id,
            tenant_name=lease.tenant.full_name,
            unit_name=unit_label(lease.unit.property.name, lease.unit.name),
        )

    def detail(self, error: str | None = None) -> SweepDetail:
        return SweepDetail(
            lease_id=self.id,
            tenant_name=self.tenant_name,
            unit_name=self.unit_name,
            success=error is None,
            error=error,
        )


Step = Callable[[LeaseCandidate], Awaitable[str | None]]


async def _process_each(
    db: AsyncSession, candidates: list[LeaseCandidate], step: Step
) -> tuple[list[SweepDetail], int, int]:
    """Run ``step`` per candidate.

    A step returns None on success, SKIPPED when the lease no longer
    qualifies, or an error message. Returns (details, succeeded, failed).
    """
    details: list[SweepDetail] = []
    succeeded = failed = 0

    for candidate in candidates:
        try:
            error = await step(candidate)
        except Exception as e:
            await db.rollback()
            logger.exception(
                f"Failed to process lease {candidate.id}",
                extra={
                    "lease_id": candidate.id,
                    "organization_id": candidate.organization_id,
                },
            )
            error = str(e) or type(e).__name__

        if error == SKIPPED:
            logger.info(
                f"Lease {candidate.id} no longer qualifies, skipped",
                extra={"lease_id": candidate.id},
            )
            continue

        details.append(candidate.detail(error))
        if error is None:
            succeeded += 1
        else:
            failed += 1

    return details, succeeded, failed


# ----- Unpaid leases -----


async def cancel_unpaid_leases(db: AsyncSession, now: datetime) -> CancelUnpaidSummary:
    """Cancel DRAFT leases still unpaid after their grace period."""
    with job_context("cancel-unpaid-leases"):
        leases = await lease_crud.get_unpaid_drafts_with_grace(db)
        candidates = [
            LeaseCandidate.from_lease(lease)
            for lease in leases
            if is_overdue(lease.start_date, lease.grace_period_days, now)
        ]
        logger.info(f"Found {len(candidates)} unpaid leases past their grace period")

        async def cancel(candidate: LeaseCandidate) -> str | None:
            lease = await lease_crud.lock_lease(db, candidate.id)
            if (
                lease is None
                or lease.status != LeaseStatus.DRAFT
                or lease.paid_at is not None
                or not is_overdue(lease.start_date, lease.grace_period_days, now)
            ):
                await db.rollback()
                return SKIPPED

            await transition(
                db,
                lease,
                LeaseStatus.CANCELLED,
                reason=TransitionReason.GRACE_PERIOD_EXPIRED,
                now=now,
            )
            await db.commit()
            return None

        details, cancelled, failed = await _process_each(db, candidates, cancel)
        logger.info(f"Cancelled {cancelled} unpaid leases, {failed} failed")

        return CancelUnpaidSummary(
            message=f"Cancelled {cancelled} unpaid leases",
            processed=len(details),
            cancelled=cancelled,
            failed=failed,
            details=details,
            processed_at=now,
        )


# ----- Expired leases -----


async def end_expired_leases(
    db: AsyncSession, notifier, now: datetime
) -> ExpireSummary:
    """End ACTIVE leases whose end date has passed and notify per organization."""
    with job_context("end-expired-leases"):
        leases = await lease_crud.get_active_leases_ended_before(db, now)
        candidates = [LeaseCandidate.from_lease(lease) for lease in leases]
        logger.info(f"Found {len(candidates)} expired leases to process")

        outbox_by_org: dict[int, list[int]] = {}

        async def end(candidate: LeaseCandidate) -> str | None:
            lease = await lease_crud.lock_lease(db, candidate.id)
            if (
                lease is None
                or lease.status != LeaseStatus.ACTIVE
                or lease.end_date >= now
            ):
                await db.rollback()
                return SKIPPED

            outcome = await transition(
                db,
                lease,
                LeaseStatus.ENDED,
                reason=TransitionReason.TERM_EXPIRED,
                now=now,
            )
            await db.commit()
            outbox_by_org.setdefault(candidate.organization_id, []).extend(
                outcome.outbox_ids
            )
            return None

        details, ended, failed = await _process_each(db, candidates, end)

        notifications = []
        for organization_id, entry_ids in outbox_by_org.items():
            result = await dispatch_outbox(db, notifier, entry_ids)
            notifications.append(
                OrganizationNotifications(
                    organization_id=organization_id, **result.model_dump()
                )
            )

        logger.info(f"Completed: {ended} leases ended, {failed} failed")
        return ExpireSummary(
            message=f"Ended {ended} expired leases",
            processed=len(details),
            ended=ended,
            failed=failed,
            details=details,
            notifications=notifications,
            processed_at=now,
        )


# ----- Auto-renewals -----


async def process_auto_renewals(
    db: AsyncSession,
    notifier,
    now: datetime,
    organization_id: int | None = None,
) -> RenewalSummary:
    """Renew every eligible auto-renew lease, optionally for one organization."""
    with job_context("process-auto-renewals"):
        leases = await find_eligible_renewals(db, now, organization_id)
        candidates = [LeaseCandidate.from_lease(lease) for lease in leases]
        logger.info(f"Found {len(candidates)} leases eligible for auto-renewal")

        async def renew(candidate: LeaseCandidate) -> str | None:
            lease = await lease_crud.lock_lease(db, candidate.id)
            if lease is None:
                await db.rollback()
                return SKIPPED
            has_successor = await lease_crud.get_successor(db, lease.id) is not None
            if not is_eligible_for_renewal(lease, now, has_successor=has_successor):
                await db.rollback()
                return SKIPPED

            renewal = await create_renewal(db, lease, notifier=notifier, now=now)
            if renewal is None:
                await db.rollback()
                return UNIT_NOT_AVAILABLE
            return None

        details, succeeded, failed = await _process_each(db, candidates, renew)
        message = (
            f"Processed {len(details)} leases, {succeeded} succeeded, {failed} failed"
        )
        logger.info(message)

        return RenewalSummary(
            message=message,
            processed=len(details),
            succeeded=succeeded,
            failed=failed,
            details=details,
            processed_at=now,
        )


# ----- Scheduled notifications -----


async def _payment_reminder_leases(
    db: AsyncSession, organization_id: int, now: datetime
) -> list[int]:
    lease_ids: dict[int, None] = {}
    rules = await notification_crud.get_active_rules(
        db, organization_id, NotificationTrigger.PAYMENT_REMINDER
    )
    for rule in rules:
        target = start_of_day(now + timedelta(days=rule.days_offset))
        leases = await lease_crud.get_active_leases_spanning(
            db, organization_id, target, target + timedelta(days=1)
        )
        for lease in leases:
            if is_payment_due_on(lease.start_date, lease.payment_cycle, target):
                lease_ids[lease.id] = None
    return list(lease_ids)


async def _late_payment_leases(
    db: AsyncSession, organization_id: int, now: datetime
) -> list[int]:
    rules = await notification_crud.get_active_rules(
        db, organization_id, NotificationTrigger.PAYMENT_LATE
    )
    if not rules:
        return []
    leases = await lease_crud.get_unpaid_drafts(db, organization_id)
    # Without a grace period the late notice is due once the start date passes;
    # such leases are never auto-cancelled.
    return [
        lease.id
        for lease in leases
        if is_overdue(lease.start_date, lease.grace_period_days or 0, now)
    ]


async def _expiring_leases(
    db: AsyncSession, organization_id: int, now: datetime
) -> list[int]:
    lease_ids: dict[int, None] = {}
    rules = await notification_crud.get_active_rules(
        db, organization_id, NotificationTrigger.LEASE_EXPIRING
    )
    for rule in rules:
        target = start_of_day(now + timedelta(days=rule.days_offset))
        leases = await lease_crud.get_active_leases_ending_between(
            db, organization_id, target, target + timedelta(days=1)
        )
        for lease in leases:
            lease_ids[lease.id] = None
    return list(lease_ids)


SCHEDULED_TRIGGERS = (
    (NotificationTrigger.PAYMENT_REMINDER, _payment_reminder_leases),
    (NotificationTrigger.PAYMENT_LATE, _late_payment_leases),
    (NotificationTrigger.LEASE_EXPIRING, _expiring_leases),
)


async def _notify(
    notifier, organization_id: int, trigger: NotificationTrigger, lease_id: int
) -> NotificationResult:
    try:
        return await notifier.process(organization_id, trigger, lease_id)
    except Exception as e:
        logger.exception(
            f"Notification processing failed for lease {lease_id}",
            extra={"organization_id": organization_id, "trigger": trigger.value},
        )
        return NotificationResult(processed=1, failed=1, errors=[str(e)])


async def process_scheduled_notifications(
    db: AsyncSession, notifier, now: datetime
) -> NotificationSweepSummary:
    """Send time-based notifications and retry undelivered outbox entries.

    PAYMENT_CONFIRMED and LEASE_EXPIRED are sent when the event happens and
    only reach this sweep through the outbox retry.
    """
    with job_context("process-notifications"):
        organization_ids = (
            await notification_crud.get_organization_ids_with_active_rules(db)
        )

        results = []
        for organization_id in organization_ids:
            for trigger, find_leases in SCHEDULED_TRIGGERS:
                lease_ids = await find_leases(db, organization_id, now)
                totals = TriggerNotifications(
                    organization_id=organization_id, trigger=trigger
                )
                for lease_id in lease_ids:
                    totals.merge(
                        await _notify(notifier, organization_id, trigger, lease_id)
                    )
                if totals.processed > 0:
                    results.append(totals)

        retried, outbox_result = await dispatch_pending(db, notifier)

        message = f"Processed notifications for {len(organization_ids)} organizations"
        logger.info(message, extra={"outbox_retried": retried})
        return NotificationSweepSummary(
            message=message,
            organizations=len(organization_ids),
            results=results,
            outbox_retried=retried,
            outbox=outbox_result,
            processed_at=now,
        )
