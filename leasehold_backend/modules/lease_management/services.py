"""Lease management business logic services."""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from ...core.logging import get_logger
from ...core.utils import unit_label
from ..activity_log.models import ActivityType
from ..activity_log.services import ActivityLogData, log_activity
from ..notifications.models import NotificationTrigger
from ..notifications.outbox import dispatch_outbox, enqueue_notification
from ..property_management import crud as unit_crud
from ..tenant_management import crud as tenant_crud
from ..tenant_management.models import TenantStatus
from . import crud
from .availability import find_future_lease, require_availability
from .models import LeaseAgreement, LeaseStatus, PaymentMethod, PaymentStatus
from .schemas import LeaseCreate, LeaseUpdate, PaymentRecord
from .state_machine import (
    TransitionReason,
    changed_fields,
    check_delete_guard,
    check_update_guards,
    describe_lease,
    transition,
)

logger = get_logger("lease_management")

TERMINAL_STATUSES = (LeaseStatus.ENDED, LeaseStatus.CANCELLED)

# Columns a PATCH may change but never empty.
REQUIRED_FIELDS = (
    "start_date",
    "end_date",
    "payment_cycle",
    "rent_amount",
    "deposit_status",
    "status",
    "is_auto_renew",
)


async def _get_lease_or_404(
    db: AsyncSession, lease_id: int, organization_id: int
) -> LeaseAgreement:
    lease = await crud.get_lease_by_id(db, lease_id, organization_id)
    if not lease:
        raise NotFoundError(f"Lease with ID {lease_id} not found")
    return lease


async def _lock_lease_or_404(
    db: AsyncSession, lease_id: int, organization_id: int
) -> LeaseAgreement:
    """Load a lease for a write, holding its row lock until commit."""
    lease = await crud.lock_lease(db, lease_id, organization_id)
    if not lease:
        raise NotFoundError(f"Lease with ID {lease_id} not found")
    return lease


async def _log(
    db: AsyncSession,
    lease: LeaseAgreement,
    type: ActivityType,
    description: str,
    actor_id: int | None,
) -> None:
    await log_activity(
        db,
        lease.organization_id,
        ActivityLogData(
            type=type,
            description=description,
            tenant_id=lease.tenant_id,
            property_id=lease.unit.property_id,
            unit_id=lease.unit_id,
            lease_id=lease.id,
        ),
        actor_id=actor_id,
    )


# ----- Payment helpers -----


async def _apply_payment(
    db: AsyncSession,
    lease: LeaseAgreement,
    paid_at: datetime,
    payment_method: PaymentMethod | None,
    *,
    now: datetime,
    actor_id: int | None,
) -> list[int]:
    """Mark paid; a DRAFT lease becomes ACTIVE. Returns outbox entry ids."""
    if lease.status in TERMINAL_STATUSES:
        raise ValidationError("Cannot mark ended leases as paid")

    lease.paid_at = paid_at
    lease.payment_status = PaymentStatus.COMPLETED
    if payment_method is not None:
        lease.payment_method = payment_method

    await _log(
        db,
        lease,
        ActivityType.PAYMENT_RECORDED,
        f"Recorded payment for {describe_lease(lease)}",
        actor_id,
    )
    entry = await enqueue_notification(
        db, lease.organization_id, NotificationTrigger.PAYMENT_CONFIRMED, lease.id
    )
    outbox_ids = [entry.id]

    if lease.status == LeaseStatus.DRAFT:
        outcome = await transition(
            db,
            lease,
            LeaseStatus.ACTIVE,
            reason=TransitionReason.PAYMENT_RECORDED,
            now=now,
            actor_id=actor_id,
        )
        outbox_ids.extend(outcome.outbox_ids)
    return outbox_ids


def _clear_payment(lease: LeaseAgreement) -> None:
    if lease.status in TERMINAL_STATUSES:
        raise ValidationError("Cannot change payment of an ended lease")
    lease.paid_at = None
    lease.payment_status = PaymentStatus.PENDING


# ----- Lease Services -----


async def create_lease(
    db: AsyncSession,
    organization_id: int,
    data: LeaseCreate,
    actor_id: int | None = None,
) -> LeaseAgreement:
    """Create a DRAFT lease after checking the unit is free for the dates."""
    tenant = await tenant_crud.get_tenant_by_id(db, data.tenant_id, organization_id)
    if not tenant:
        raise NotFoundError(f"Tenant with ID {data.tenant_id} not found")

    unit = await unit_crud.get_unit_by_id(db, data.unit_id, organization_id)
    if not unit:
        raise NotFoundError(f"Unit with ID {data.unit_id} not found")
    if unit.is_unavailable:
        raise BusinessLogicError("This unit is marked as unavailable")

    await require_availability(db, unit.id, data.start_date, data.end_date)

    lease = await crud.create_lease(
        db,
        organization_id=organization_id,
        status=LeaseStatus.DRAFT,
        payment_status=PaymentStatus.PENDING,
        **data.model_dump(),
    )

    if tenant.status != TenantStatus.ACTIVE:
        await tenant_crud.set_tenant_status(db, tenant, TenantStatus.BOOKED)

    await log_activity(
        db,
        organization_id,
        ActivityLogData(
            type=ActivityType.LEASE_CREATED,
            description=(
                f"Created lease agreement for {tenant.full_name} at "
                f"{unit_label(unit.property.name, unit.name)}"
            ),
            tenant_id=tenant.id,
            property_id=unit.property_id,
            unit_id=unit.id,
            lease_id=lease.id,
        ),
        actor_id=actor_id,
    )

    await db.commit()
    logger.info(
        f"Created lease {lease.id} for unit {unit.id}",
        extra={"lease_id": lease.id, "organization_id": organization_id},
    )
    return await _get_lease_or_404(db, lease.id, organization_id)


async def update_lease(
    db: AsyncSession,
    organization_id: int,
    lease_id: int,
    data: LeaseUpdate,
    *,
    notifier,
    now: datetime,
    actor_id: int | None = None,
) -> LeaseAgreement:
    """Apply a partial update: field edits, payment and status change.

    Everything is checked against the lease's current state first and
    committed together.
    """
    fields = data.model_dump(exclude_unset=True)
    for name in REQUIRED_FIELDS:
        if name in fields and fields[name] is None:
            raise ValidationError("Field cannot be null", field=name)

    lease = await _lock_lease_or_404(db, lease_id, organization_id)
    target_status = fields.pop("status", None)
    payment_requested = "paid_at" in fields
    paid_at = fields.pop("paid_at", None)

    guarded = dict(fields)
    if payment_requested:
        guarded["paid_at"] = paid_at
    await check_update_guards(db, lease, guarded, now)

    edits = changed_fields(lease, fields)

    if lease.status == LeaseStatus.DRAFT and (
        "start_date" in edits or "end_date" in edits
    ):
        await require_availability(
            db,
            lease.unit_id,
            edits.get("start_date", lease.start_date),
            edits.get("end_date", lease.end_date),
            exclude_lease_id=lease.id,
        )

    for name, value in edits.items():
        setattr(lease, name, value)

    outbox_ids: list[int] = []
    if payment_requested and paid_at != lease.paid_at:
        if paid_at is not None:
            outbox_ids += await _apply_payment(
                db, lease, paid_at, None, now=now, actor_id=actor_id
            )
        else:
            _clear_payment(lease)

    if target_status is not None and target_status != lease.status:
        outcome = await transition(
            db,
            lease,
            target_status,
            reason=TransitionReason.MANUAL,
            now=now,
            actor_id=actor_id,
        )
        outbox_ids += outcome.outbox_ids

    if edits:
        await _log(
            db,
            lease,
            ActivityType.LEASE_UPDATED,
            f"Updated lease agreement for {describe_lease(lease)}",
            actor_id,
        )

    await db.commit()
    await dispatch_outbox(db, notifier, outbox_ids)
    return await _get_lease_or_404(db, lease_id, organization_id)


async def record_payment(
    db: AsyncSession,
    organization_id: int,
    lease_id: int,
    data: PaymentRecord,
    *,
    notifier,
    now: datetime,
    actor_id: int | None = None,
) -> LeaseAgreement:
    """Mark a lease paid (payment webhook or operator)."""
    lease = await _lock_lease_or_404(db, lease_id, organization_id)
    outbox_ids = await _apply_payment(
        db,
        lease,
        data.paid_at or now,
        data.payment_method,
        now=now,
        actor_id=actor_id,
    )
    await db.commit()
    await dispatch_outbox(db, notifier, outbox_ids)
    return await _get_lease_or_404(db, lease_id, organization_id)


async def clear_payment(
    db: AsyncSession,
    organization_id: int,
    lease_id: int,
    actor_id: int | None = None,
) -> LeaseAgreement:
    """Undo a recorded payment. The lease status is not rolled back."""
    lease = await _lock_lease_or_404(db, lease_id, organization_id)
    _clear_payment(lease)
    await _log(
        db,
        lease,
        ActivityType.LEASE_UPDATED,
        f"Cleared payment for {describe_lease(lease)}",
        actor_id,
    )
    await db.commit()
    return await _get_lease_or_404(db, lease_id, organization_id)


async def delete_lease(
    db: AsyncSession,
    organization_id: int,
    lease_id: int,
    actor_id: int | None = None,
) -> None:
    """Hard-delete a DRAFT lease outside any renewal chain."""
    lease = await _lock_lease_or_404(db, lease_id, organization_id)
    await check_delete_guard(db, lease)

    description = f"Deleted draft lease for {describe_lease(lease)}"
    tenant = lease.tenant
    other_leases = await crud.count_other_leases(db, lease.tenant_id, lease.id)

    await crud.delete_lease(db, lease)
    if other_leases == 0:
        await tenant_crud.set_tenant_status(db, tenant, TenantStatus.LEAD)

    await log_activity(
        db,
        organization_id,
        ActivityLogData(
            type=ActivityType.OTHER,
            description=description,
            tenant_id=tenant.id,
            property_id=lease.unit.property_id,
            unit_id=lease.unit_id,
        ),
        actor_id=actor_id,
    )
    await db.commit()


async def check_future_lease(
    db: AsyncSession, organization_id: int, lease_id: int
) -> LeaseAgreement | None:
    """The next booking on the unit after this lease, if any."""
    lease = await _get_lease_or_404(db, lease_id, organization_id)
    return await find_future_lease(db, lease)
