from datetime import timedelta
from decimal import Decimal
from itertools import product

import pytest
from sqlalchemy import select

from conftest import NOW
from leasehold_backend.core.exceptions import InvalidTransitionError, ValidationError
from leasehold_backend.modules.activity_log.models import ActivityType
from leasehold_backend.modules.activity_log.services import get_activities
from leasehold_backend.modules.lease_management.models import (
    DepositStatus,
    LeaseStatus,
)
from leasehold_backend.modules.lease_management.state_machine import (
    ALLOWED_TRANSITIONS,
    TransitionReason,
    can_transition,
    check_delete_guard,
    check_update_guards,
    describe_lease,
    transition,
)
from leasehold_backend.modules.notifications.models import (
    NotificationOutbox,
    NotificationTrigger,
    OutboxStatus,
)
from leasehold_backend.modules.tenant_management.models import Tenant, TenantStatus

FORBIDDEN = [
    (current, target)
    for current, target in product(LeaseStatus, LeaseStatus)
    if target not in ALLOWED_TRANSITIONS[current]
]


def test_transition_table():
    assert can_transition(LeaseStatus.DRAFT, LeaseStatus.ACTIVE)
    assert can_transition(LeaseStatus.DRAFT, LeaseStatus.CANCELLED)
    assert can_transition(LeaseStatus.ACTIVE, LeaseStatus.ENDED)
    assert not can_transition(LeaseStatus.ACTIVE, LeaseStatus.DRAFT)
    assert not can_transition(LeaseStatus.ACTIVE, LeaseStatus.CANCELLED)
    assert not can_transition(LeaseStatus.CANCELLED, LeaseStatus.ACTIVE)
    assert ALLOWED_TRANSITIONS[LeaseStatus.ENDED] == frozenset()


@pytest.mark.parametrize("current, target", FORBIDDEN)
async def test_forbidden_transitions_raise(db, make_lease, current, target):
    lease = await make_lease(status=current)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await transition(db, lease, target, reason=TransitionReason.MANUAL, now=NOW)

    assert lease.status == current
    if current == LeaseStatus.ENDED:
        assert exc_info.value.message == "Cannot change status of an ended lease"
    else:
        assert exc_info.value.message == (
            f"Invalid status transition from {current.name} to {target.name}"
        )


async def test_describe_lease(make_lease):
    lease = await make_lease()
    assert describe_lease(lease) == "Jane Doe at Sunset Villas - A1"


async def test_activation_makes_tenant_active(db, make_lease):
    lease = await make_lease()

    outcome = await transition(
        db, lease, LeaseStatus.ACTIVE, reason=TransitionReason.PAYMENT_RECORDED, now=NOW
    )
    await db.commit()

    assert outcome.from_status == LeaseStatus.DRAFT
    assert outcome.to_status == LeaseStatus.ACTIVE
    assert outcome.outbox_ids == []
    assert lease.tenant.status == TenantStatus.ACTIVE

    activities = await get_activities(db, lease.organization_id, lease_id=lease.id)
    assert [a.type for a in activities] == [ActivityType.LEASE_UPDATED]
    assert activities[0].description == (
        "Activated lease agreement for Jane Doe at Sunset Villas - A1"
    )


async def test_grace_cancellation_activity(db, make_lease):
    lease = await make_lease(grace_period_days=3)

    await transition(
        db,
        lease,
        LeaseStatus.CANCELLED,
        reason=TransitionReason.GRACE_PERIOD_EXPIRED,
        now=NOW,
    )

    activities = await get_activities(db, lease.organization_id, lease_id=lease.id)
    assert activities[0].type == ActivityType.LEASE_TERMINATED
    assert activities[0].description == (
        "Auto-cancelled lease for Jane Doe at Sunset Villas - A1 "
        "(unpaid after grace period)"
    )


async def test_term_expiry_expires_tenant_and_queues_notification(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ACTIVE)
    lease.tenant.status = TenantStatus.ACTIVE

    outcome = await transition(
        db, lease, LeaseStatus.ENDED, reason=TransitionReason.TERM_EXPIRED, now=NOW
    )
    await db.commit()

    assert lease.tenant.status == TenantStatus.EXPIRED
    entry = await db.get(NotificationOutbox, outcome.outbox_ids[0])
    assert entry.trigger == NotificationTrigger.LEASE_EXPIRED
    assert entry.related_entity_id == lease.id
    assert entry.status == OutboxStatus.PENDING

    activities = await get_activities(db, lease.organization_id)
    descriptions = {a.type: a.description for a in activities}
    assert descriptions[ActivityType.LEASE_TERMINATED] == (
        "Lease for Jane Doe at Sunset Villas - A1 ended (expired)"
    )
    assert descriptions[ActivityType.TENANT_STATUS_CHANGED] == (
        "Tenant Jane Doe status changed to EXPIRED (all leases ended)"
    )


async def test_tenant_with_another_active_lease_stays_active(
    db, make_lease, other_unit
):
    lease = await make_lease(status=LeaseStatus.ACTIVE)
    await make_lease(status=LeaseStatus.ACTIVE, unit_id=other_unit.id)
    lease.tenant.status = TenantStatus.ACTIVE

    await transition(
        db, lease, LeaseStatus.ENDED, reason=TransitionReason.TERM_EXPIRED, now=NOW
    )
    await db.commit()

    tenant = await db.scalar(select(Tenant).where(Tenant.id == lease.tenant_id))
    assert tenant.status == TenantStatus.ACTIVE


async def test_renewal_end_only_queues_notification(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ACTIVE)
    lease.tenant.status = TenantStatus.ACTIVE

    outcome = await transition(
        db, lease, LeaseStatus.ENDED, reason=TransitionReason.RENEWED, now=NOW
    )

    assert len(outcome.outbox_ids) == 1
    assert lease.tenant.status == TenantStatus.ACTIVE
    assert await get_activities(db, lease.organization_id) == []


# ----- Update guards -----


async def test_terms_frozen_after_draft(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ACTIVE)

    with pytest.raises(ValidationError, match="rent_amount"):
        await check_update_guards(db, lease, {"rent_amount": Decimal("1200")}, NOW)


async def test_draft_terms_are_editable(db, make_lease):
    lease = await make_lease()
    await check_update_guards(
        db,
        lease,
        {"rent_amount": Decimal("1200"), "end_date": NOW + timedelta(days=60)},
        NOW,
    )


async def test_unchanged_values_pass_guards(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ACTIVE)
    await check_update_guards(db, lease, {"rent_amount": lease.rent_amount}, NOW)


@pytest.mark.parametrize(
    "status", [LeaseStatus.DRAFT, LeaseStatus.ACTIVE, LeaseStatus.CANCELLED]
)
async def test_deposit_status_only_for_ended_leases(db, make_lease, status):
    lease = await make_lease(status=status)
    with pytest.raises(ValidationError, match="ended leases"):
        await check_update_guards(
            db, lease, {"deposit_status": DepositStatus.RETURNED}, NOW
        )


async def test_deposit_can_be_settled_once(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ENDED)
    await check_update_guards(db, lease, {"deposit_status": DepositStatus.RETURNED}, NOW)

    settled = await make_lease(
        status=LeaseStatus.ENDED,
        deposit_status=DepositStatus.FORFEITED,
        start_date=NOW - timedelta(days=90),
        end_date=NOW - timedelta(days=60),
    )
    with pytest.raises(ValidationError, match="already been forfeited"):
        await check_update_guards(
            db, settled, {"deposit_status": DepositStatus.RETURNED}, NOW
        )


async def test_deposit_carried_over_to_renewal(db, make_lease):
    original = await make_lease(status=LeaseStatus.ENDED)
    await make_lease(
        renewed_from_id=original.id,
        start_date=original.end_date + timedelta(days=1),
        end_date=original.end_date + timedelta(days=30),
    )

    with pytest.raises(ValidationError, match="carried over"):
        await check_update_guards(
            db, original, {"deposit_status": DepositStatus.RETURNED}, NOW
        )


async def test_auto_renewal_locked_after_notice_deadline(db, make_lease):
    lease = await make_lease(
        status=LeaseStatus.ACTIVE,
        end_date=NOW + timedelta(days=5),
        is_auto_renew=True,
        auto_renewal_notice_days=10,
    )
    with pytest.raises(ValidationError, match="notice deadline"):
        await check_update_guards(db, lease, {"is_auto_renew": False}, NOW)


async def test_auto_renewal_editable_before_deadline(db, make_lease):
    lease = await make_lease(
        status=LeaseStatus.ACTIVE,
        end_date=NOW + timedelta(days=30),
        is_auto_renew=True,
        auto_renewal_notice_days=10,
    )
    await check_update_guards(db, lease, {"is_auto_renew": False}, NOW)


async def test_cannot_enable_auto_renewal_with_future_booking(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ACTIVE)
    await make_lease(
        start_date=lease.end_date + timedelta(days=5),
        end_date=lease.end_date + timedelta(days=40),
    )
    with pytest.raises(ValidationError, match="already booked"):
        await check_update_guards(db, lease, {"is_auto_renew": True}, NOW)


@pytest.mark.parametrize("status", [LeaseStatus.ENDED, LeaseStatus.CANCELLED])
async def test_payment_fields_frozen_on_finished_leases(db, make_lease, status):
    lease = await make_lease(status=status)
    with pytest.raises(ValidationError, match="Cannot mark ended leases as paid"):
        await check_update_guards(db, lease, {"paid_at": NOW}, NOW)


# ----- Delete guard -----


async def test_only_drafts_can_be_deleted(db, make_lease):
    lease = await make_lease(status=LeaseStatus.ACTIVE)
    with pytest.raises(ValidationError, match="Only draft leases"):
        await check_delete_guard(db, lease)


async def test_renewal_drafts_cannot_be_deleted(db, make_lease):
    original = await make_lease(status=LeaseStatus.ENDED)
    renewal = await make_lease(
        renewed_from_id=original.id,
        start_date=original.end_date + timedelta(days=1),
        end_date=original.end_date + timedelta(days=30),
    )
    with pytest.raises(ValidationError, match="renewal chain"):
        await check_delete_guard(db, renewal)
