"""
Lease status state machine.

Every status change, whether it comes from the API, a payment or a scheduled
job, goes through ``transition``. The handler registered for the
``(from, to)`` pair performs the dependent writes (tenant status, activity
feed, notification intents) in the caller's transaction. ``transition``
flushes but never commits; the caller commits once and then dispatches the
returned outbox entries.
"""

import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import InvalidTransitionError, ValidationError
from ...core.logging import get_logger
from ...core.utils import unit_label
from ..activity_log.models import ActivityType
from ..activity_log.services import ActivityLogData, log_activity
from ..notifications.models import NotificationTrigger
from ..notifications.outbox import enqueue_notification
from ..tenant_management import crud as tenant_crud
from ..tenant_management.models import TenantStatus
from . import crud
from .availability import has_future_lease
from .dates import can_change_auto_renewal
from .models import DepositStatus, LeaseAgreement, LeaseStatus

logger = get_logger("lease_management.state_machine")


class TransitionReason(str, enum.Enum):
    PAYMENT_RECORDED = "payment_recorded"
    MANUAL = "manual"
    GRACE_PERIOD_EXPIRED = "grace_period_expired"
    TERM_EXPIRED = "term_expired"
    RENEWED = "renewed"


ALLOWED_TRANSITIONS: dict[LeaseStatus, frozenset[LeaseStatus]] = {
    LeaseStatus.DRAFT: frozenset({LeaseStatus.ACTIVE, LeaseStatus.CANCELLED}),
    LeaseStatus.ACTIVE: frozenset({LeaseStatus.ENDED}),
    LeaseStatus.ENDED: frozenset(),
    LeaseStatus.CANCELLED: frozenset(),
}

# Fields frozen once the lease leaves DRAFT
TERMS_FIELDS = ("start_date", "end_date", "payment_cycle", "rent_amount", "deposit_amount")
AUTO_RENEWAL_FIELDS = ("is_auto_renew", "grace_period_days", "auto_renewal_notice_days")
PAYMENT_FIELDS = ("paid_at", "payment_status", "payment_method")


@dataclass
class TransitionContext:
    db: AsyncSession
    lease: LeaseAgreement
    reason: TransitionReason
    actor_id: int | None
    now: datetime


@dataclass
class TransitionOutcome:
    lease_id: int
    from_status: LeaseStatus
    to_status: LeaseStatus
    outbox_ids: list[int] = field(default_factory=list)


Handler = Callable[[TransitionContext], Awaitable[list[int]]]


def describe_lease(lease: LeaseAgreement) -> str:
    """'Jane Doe at Sunset Villas - A1'. Needs tenant and unit.property loaded."""
    unit = lease.unit
    return f"{lease.tenant.full_name} at {unit_label(unit.property.name, unit.name)}"


async def _log(ctx: TransitionContext, type: ActivityType, description: str, **ids):
    lease = ctx.lease
    await log_activity(
        ctx.db,
        lease.organization_id,
        ActivityLogData(
            type=type,
            description=description,
            tenant_id=ids.get("tenant_id", lease.tenant_id),
            property_id=ids.get("property_id", lease.unit.property_id),
            unit_id=ids.get("unit_id", lease.unit_id),
            lease_id=ids.get("lease_id", lease.id),
        ),
        actor_id=ctx.actor_id,
    )


# ----- Handlers -----


async def _on_activate(ctx: TransitionContext) -> list[int]:
    await tenant_crud.set_tenant_status(ctx.db, ctx.lease.tenant, TenantStatus.ACTIVE)
    await _log(
        ctx,
        ActivityType.LEASE_UPDATED,
        f"Activated lease agreement for {describe_lease(ctx.lease)}",
    )
    return []


async def _on_cancel(ctx: TransitionContext) -> list[int]:
    if ctx.reason == TransitionReason.GRACE_PERIOD_EXPIRED:
        description = (
            f"Auto-cancelled lease for {describe_lease(ctx.lease)} "
            "(unpaid after grace period)"
        )
    else:
        description = f"Cancelled lease agreement for {describe_lease(ctx.lease)}"
    await _log(ctx, ActivityType.LEASE_TERMINATED, description)
    return []


async def _on_end(ctx: TransitionContext) -> list[int]:
    lease = ctx.lease

    if ctx.reason != TransitionReason.RENEWED:
        other_active = await crud.count_other_leases(
            ctx.db, lease.tenant_id, lease.id, status=LeaseStatus.ACTIVE
        )
        if other_active == 0:
            changed = await tenant_crud.set_tenant_status(
                ctx.db, lease.tenant, TenantStatus.EXPIRED
            )
            if changed:
                await _log(
                    ctx,
                    ActivityType.TENANT_STATUS_CHANGED,
                    f"Tenant {lease.tenant.full_name} status changed to EXPIRED "
                    "(all leases ended)",
                    property_id=None,
                    unit_id=None,
                    lease_id=None,
                )

        if ctx.reason == TransitionReason.TERM_EXPIRED:
            description = f"Lease for {describe_lease(lease)} ended (expired)"
        else:
            description = f"Ended lease agreement for {describe_lease(lease)}"
        await _log(ctx, ActivityType.LEASE_TERMINATED, description)

    entry = await enqueue_notification(
        ctx.db, lease.organization_id, NotificationTrigger.LEASE_EXPIRED, lease.id
    )
    return [entry.id]


_HANDLERS: dict[tuple[LeaseStatus, LeaseStatus], Handler] = {
    (LeaseStatus.DRAFT, LeaseStatus.ACTIVE): _on_activate,
    (LeaseStatus.DRAFT, LeaseStatus.CANCELLED): _on_cancel,
    (LeaseStatus.ACTIVE, LeaseStatus.ENDED): _on_end,
}


def can_transition(current: LeaseStatus, target: LeaseStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


async def transition(
    db: AsyncSession,
    lease: LeaseAgreement,
    target: LeaseStatus,
    *,
    reason: TransitionReason,
    now: datetime,
    actor_id: int | None = None,
) -> TransitionOutcome:
    """Move ``lease`` to ``target`` and run the side effects for the pair.

    The lease must have tenant and unit.property loaded. Raises
    InvalidTransitionError for pairs outside the table.
    """
    current = lease.status
    if not can_transition(current, target):
        if current == LeaseStatus.ENDED:
            raise InvalidTransitionError(
                current, target, "Cannot change status of an ended lease"
            )
        raise InvalidTransitionError(current, target)

    lease.status = target
    await db.flush()

    handler = _HANDLERS[(current, target)]
    outbox_ids = await handler(
        TransitionContext(db=db, lease=lease, reason=reason, actor_id=actor_id, now=now)
    )

    logger.info(
        f"Lease {lease.id} {current.value} -> {target.value} ({reason.value})",
        extra={
            "lease_id": lease.id,
            "organization_id": lease.organization_id,
            "from_status": current.value,
            "to_status": target.value,
            "reason": reason.value,
        },
    )
    return TransitionOutcome(
        lease_id=lease.id, from_status=current, to_status=target, outbox_ids=outbox_ids
    )


# ----- Guards -----


def changed_fields(lease: LeaseAgreement, changes: dict[str, Any]) -> dict[str, Any]:
    """Only the entries of ``changes`` that differ from the lease's values."""
    return {
        name: value for name, value in changes.items() if getattr(lease, name) != value
    }


async def check_update_guards(
    db: AsyncSession,
    lease: LeaseAgreement,
    changes: dict[str, Any],
    now: datetime,
) -> None:
    """Reject field edits the lease's current state does not allow.

    ``changes`` maps field names to requested values; unchanged values are
    ignored. Raises ValidationError with the first violated rule.
    """
    changed = changed_fields(lease, changes)
    if not changed:
        return

    if lease.status != LeaseStatus.DRAFT:
        frozen = [name for name in TERMS_FIELDS if name in changed]
        if frozen:
            raise ValidationError(
                f"Cannot change {', '.join(frozen)} of a lease that is "
                f"{lease.status.name}; only draft leases can be edited"
            )

    if "deposit_status" in changed:
        if lease.status != LeaseStatus.ENDED:
            raise ValidationError("Deposit status can only be changed for ended leases")
        if lease.deposit_status != DepositStatus.HELD:
            raise ValidationError(
                f"Deposit has already been {lease.deposit_status.name.lower()}"
            )
        if await crud.get_successor(db, lease.id) is not None:
            raise ValidationError(
                "Deposit has been carried over to the renewal lease and cannot be changed"
            )

    if lease.status == LeaseStatus.ACTIVE and any(
        name in changed for name in AUTO_RENEWAL_FIELDS
    ):
        if not can_change_auto_renewal(
            lease.end_date, lease.auto_renewal_notice_days, now
        ):
            raise ValidationError(
                "Auto-renewal settings can no longer be changed: "
                "the renewal notice deadline has passed"
            )
        if changed.get("is_auto_renew") is True and await has_future_lease(db, lease):
            raise ValidationError(
                "Cannot enable auto-renewal: the unit is already booked "
                "after this lease ends"
            )

    if lease.status in (LeaseStatus.ENDED, LeaseStatus.CANCELLED) and any(
        name in changed for name in PAYMENT_FIELDS
    ):
        raise ValidationError("Cannot mark ended leases as paid")


async def check_delete_guard(db: AsyncSession, lease: LeaseAgreement) -> None:
    if lease.status != LeaseStatus.DRAFT:
        raise ValidationError("Only draft leases can be deleted")
    if lease.renewed_from_id is not None or (
        await crud.get_successor(db, lease.id) is not None
    ):
        raise ValidationError("Leases that are part of a renewal chain cannot be deleted")
