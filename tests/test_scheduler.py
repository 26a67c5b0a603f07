from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from conftest import NOW
from leasehold_backend.modules.activity_log.services import get_activities
from leasehold_backend.modules.lease_management import crud, state_machine
from leasehold_backend.modules.lease_management.dates import start_of_day
from leasehold_backend.modules.lease_management.models import LeaseStatus
from leasehold_backend.modules.notifications.models import (
    NotificationOutbox,
    NotificationRule,
    NotificationTrigger,
    OutboxStatus,
)
from leasehold_backend.modules.notifications.outbox import enqueue_notification
from leasehold_backend.modules.scheduler import services
from leasehold_backend.modules.scheduler.services import (
    UNIT_NOT_AVAILABLE,
    cancel_unpaid_leases,
    end_expired_leases,
    process_auto_renewals,
    process_scheduled_notifications,
)
from leasehold_backend.modules.tenant_management.models import Tenant, TenantStatus


async def status_of(db, lease_id):
    return (await crud.get_lease_by_id(db, lease_id)).status


# ----- Unpaid leases -----


async def test_cancel_unpaid_leases(db, make_lease, other_unit):
    overdue = await make_lease(grace_period_days=3)
    within_grace = await make_lease(grace_period_days=30, unit_id=other_unit.id)
    no_grace = await make_lease(start_date=NOW - timedelta(days=100))
    paid = await make_lease(grace_period_days=1, paid_at=NOW - timedelta(days=9))

    summary = await cancel_unpaid_leases(db, NOW)

    assert summary.success
    assert summary.processed == 1
    assert summary.cancelled == 1
    assert summary.failed == 0
    assert summary.message == "Cancelled 1 unpaid leases"
    assert summary.details[0].lease_id == overdue.id
    assert summary.details[0].tenant_name == "Jane Doe"
    assert summary.details[0].unit_name == "Sunset Villas - A1"
    assert summary.details[0].success

    assert await status_of(db, overdue.id) == LeaseStatus.CANCELLED
    assert await status_of(db, within_grace.id) == LeaseStatus.DRAFT
    assert await status_of(db, no_grace.id) == LeaseStatus.DRAFT
    assert await status_of(db, paid.id) == LeaseStatus.DRAFT


async def test_cancel_unpaid_is_idempotent(db, make_lease):
    await make_lease(grace_period_days=3)

    first = await cancel_unpaid_leases(db, NOW)
    second = await cancel_unpaid_leases(db, NOW)

    assert first.cancelled == 1
    assert second.processed == 0
    assert second.cancelled == 0


async def test_lease_exactly_at_grace_deadline_is_kept(db, make_lease):
    lease = await make_lease(start_date=NOW - timedelta(days=3), grace_period_days=3)

    summary = await cancel_unpaid_leases(db, NOW)

    assert summary.cancelled == 0
    assert await status_of(db, lease.id) == LeaseStatus.DRAFT


# ----- Expired leases -----


async def test_end_expired_leases(db, make_lease, notifier, organization, tenant):
    expired = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW - timedelta(hours=1),
    )
    running = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW,
        end_date=NOW + timedelta(days=30),
    )

    summary = await end_expired_leases(db, notifier, NOW)

    assert summary.ended == 1
    assert summary.processed == 1
    assert summary.message == "Ended 1 expired leases"
    assert await status_of(db, expired.id) == LeaseStatus.ENDED
    assert await status_of(db, running.id) == LeaseStatus.ACTIVE

    assert notifier.calls == [
        (organization.id, NotificationTrigger.LEASE_EXPIRED, expired.id)
    ]
    assert len(summary.notifications) == 1
    assert summary.notifications[0].organization_id == organization.id
    assert summary.notifications[0].sent == 1


async def test_end_expired_rolls_up_tenant_status(db, make_lease, notifier, tenant):
    tenant.status = TenantStatus.ACTIVE
    await db.commit()
    await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW - timedelta(days=1),
    )

    await end_expired_leases(db, notifier, NOW)

    await db.refresh(tenant)
    assert tenant.status == TenantStatus.EXPIRED


async def test_end_expired_is_idempotent(db, make_lease, notifier):
    await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW - timedelta(days=1),
    )

    await end_expired_leases(db, notifier, NOW)
    second = await end_expired_leases(db, notifier, NOW)

    assert second.ended == 0
    assert second.notifications == []
    assert len(notifier.calls) == 1


async def test_one_failing_lease_does_not_stop_the_sweep(
    db, make_lease, notifier, other_unit, monkeypatch
):
    broken = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW - timedelta(days=2),
    )
    healthy = await make_lease(
        status=LeaseStatus.ACTIVE,
        unit_id=other_unit.id,
        start_date=NOW - timedelta(days=40),
        end_date=NOW - timedelta(days=1),
    )

    real_transition = services.transition
    broken_id, healthy_id = broken.id, healthy.id

    async def flaky_transition(db, lease, target, **kwargs):
        if lease.id == broken_id:
            raise RuntimeError("database hiccup")
        return await real_transition(db, lease, target, **kwargs)

    monkeypatch.setattr(services, "transition", flaky_transition)

    summary = await end_expired_leases(db, notifier, NOW)

    assert summary.processed == 2
    assert summary.ended == 1
    assert summary.failed == 1
    failure = next(d for d in summary.details if not d.success)
    assert failure.lease_id == broken_id
    assert failure.error == "database hiccup"
    assert await status_of(db, broken_id) == LeaseStatus.ACTIVE
    assert await status_of(db, healthy_id) == LeaseStatus.ENDED


async def test_failure_inside_transition_rolls_back_every_write(
    db, make_lease, notifier, tenant, monkeypatch
):
    tenant.status = TenantStatus.ACTIVE
    await db.commit()
    lease = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW - timedelta(days=1),
    )
    lease_id, organization_id = lease.id, lease.organization_id

    async def broken_enqueue(*args, **kwargs):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr(state_machine, "enqueue_notification", broken_enqueue)

    summary = await end_expired_leases(db, notifier, NOW)

    assert summary.failed == 1
    assert summary.details[0].error == "outbox unavailable"
    assert await status_of(db, lease_id) == LeaseStatus.ACTIVE
    await db.refresh(tenant)
    assert tenant.status == TenantStatus.ACTIVE
    assert await get_activities(db, organization_id) == []
    assert await db.scalar(select(NotificationOutbox)) is None
    assert notifier.calls == []


# ----- Auto-renewals -----


async def test_auto_renewal_end_to_end(db, make_lease, notifier, tenant):
    today = start_of_day(NOW)
    original = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=today - timedelta(days=40),
        end_date=today + timedelta(days=3),
        is_auto_renew=True,
        auto_renewal_notice_days=10,
    )
    tenant.status = TenantStatus.ACTIVE
    await db.commit()

    summary = await process_auto_renewals(db, notifier, NOW)

    assert summary.processed == 1
    assert summary.succeeded == 1
    assert summary.failed == 0
    assert summary.message == "Processed 1 leases, 1 succeeded, 0 failed"

    renewal = await crud.get_successor(db, original.id)
    assert renewal.status == LeaseStatus.DRAFT
    assert renewal.start_date == today + timedelta(days=4)
    assert await status_of(db, original.id) == LeaseStatus.ENDED

    await db.refresh(tenant)
    assert tenant.status == TenantStatus.ACTIVE
    assert notifier.triggers == [NotificationTrigger.LEASE_EXPIRED]

    again = await process_auto_renewals(db, notifier, NOW)
    assert again.processed == 0
    assert again.message == "Processed 0 leases, 0 succeeded, 0 failed"


async def test_auto_renewal_reports_unavailable_unit(db, make_lease, notifier):
    original = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW + timedelta(days=3),
        is_auto_renew=True,
        auto_renewal_notice_days=10,
    )
    await make_lease(
        start_date=NOW + timedelta(days=10), end_date=NOW + timedelta(days=20)
    )
    original_id = original.id

    summary = await process_auto_renewals(db, notifier, NOW)

    assert summary.processed == 1
    assert summary.failed == 1
    assert summary.details[0].error == UNIT_NOT_AVAILABLE
    assert await status_of(db, original_id) == LeaseStatus.ACTIVE
    assert await crud.get_successor(db, original_id) is None


async def test_auto_renewal_for_one_organization(db, make_lease, notifier, organization):
    await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=NOW - timedelta(days=40),
        end_date=NOW + timedelta(days=3),
        is_auto_renew=True,
        auto_renewal_notice_days=10,
    )

    other = await process_auto_renewals(
        db, notifier, NOW, organization_id=organization.id + 1
    )
    own = await process_auto_renewals(
        db, notifier, NOW, organization_id=organization.id
    )

    assert other.processed == 0
    assert own.succeeded == 1


# ----- Scheduled notifications -----


@pytest.fixture
async def rules(db, organization):
    for trigger, offset in (
        (NotificationTrigger.PAYMENT_REMINDER, 3),
        (NotificationTrigger.PAYMENT_LATE, 0),
        (NotificationTrigger.LEASE_EXPIRING, 7),
    ):
        db.add(
            NotificationRule(
                organization_id=organization.id,
                name=f"{trigger.value} rule",
                trigger=trigger,
                days_offset=offset,
                channels=["email"],
            )
        )
    await db.commit()


async def test_process_scheduled_notifications(
    db, make_lease, other_unit, notifier, organization, rules
):
    # monthly rent due on the 18th, three days after NOW
    reminder = await make_lease(
        status=LeaseStatus.ACTIVE,
        start_date=datetime(2026, 1, 18, 10, 0, tzinfo=timezone.utc),
        end_date=datetime(2026, 12, 17, 10, 0, tzinfo=timezone.utc),
    )
    expiring = await make_lease(
        status=LeaseStatus.ACTIVE,
        unit_id=other_unit.id,
        start_date=NOW - timedelta(days=20),
        end_date=start_of_day(NOW) + timedelta(days=7, hours=18),
    )
    late = await make_lease(
        start_date=NOW - timedelta(days=10),
        end_date=NOW + timedelta(days=20),
        grace_period_days=2,
    )
    await make_lease(
        start_date=NOW + timedelta(days=1),
        end_date=NOW + timedelta(days=5),
        unit_id=other_unit.id,
    )

    summary = await process_scheduled_notifications(db, notifier, NOW)

    assert summary.organizations == 1
    assert summary.message == "Processed notifications for 1 organizations"
    assert notifier.calls == [
        (organization.id, NotificationTrigger.PAYMENT_REMINDER, reminder.id),
        (organization.id, NotificationTrigger.PAYMENT_LATE, late.id),
        (organization.id, NotificationTrigger.LEASE_EXPIRING, expiring.id),
    ]
    assert [(r.trigger, r.processed, r.sent) for r in summary.results] == [
        (NotificationTrigger.PAYMENT_REMINDER, 1, 1),
        (NotificationTrigger.PAYMENT_LATE, 1, 1),
        (NotificationTrigger.LEASE_EXPIRING, 1, 1),
    ]
    assert summary.outbox_retried == 0


async def test_late_notice_without_grace_period(
    db, make_lease, notifier, organization, rules
):
    lease = await make_lease(start_date=NOW - timedelta(days=1))

    await process_scheduled_notifications(db, notifier, NOW)
    cancelled = await cancel_unpaid_leases(db, NOW)

    assert notifier.calls == [
        (organization.id, NotificationTrigger.PAYMENT_LATE, lease.id)
    ]
    assert cancelled.processed == 0
    assert await status_of(db, lease.id) == LeaseStatus.DRAFT


async def test_notification_sweep_without_rules_does_nothing(db, make_lease, notifier):
    await make_lease(grace_period_days=1)

    summary = await process_scheduled_notifications(db, notifier, NOW)

    assert summary.organizations == 0
    assert summary.results == []
    assert notifier.calls == []


async def test_notification_failures_are_counted(db, make_lease, notifier, rules):
    await make_lease(grace_period_days=2)
    notifier.fail = True

    summary = await process_scheduled_notifications(db, notifier, NOW)

    assert len(summary.results) == 1
    assert summary.results[0].trigger == NotificationTrigger.PAYMENT_LATE
    assert summary.results[0].failed == 1
    assert summary.results[0].errors


async def test_notification_sweep_retries_outbox(db, make_lease, notifier, organization):
    lease = await make_lease(status=LeaseStatus.ENDED)
    entry = await enqueue_notification(
        db, organization.id, NotificationTrigger.LEASE_EXPIRED, lease.id
    )
    await db.commit()

    summary = await process_scheduled_notifications(db, notifier, NOW)

    assert summary.outbox_retried == 1
    assert summary.outbox.sent == 1
    assert notifier.calls == [
        (organization.id, NotificationTrigger.LEASE_EXPIRED, lease.id)
    ]
    await db.refresh(entry)
    assert entry.status == OutboxStatus.SENT
    assert entry.attempts == 1


async def test_tenant_status_untouched_by_notification_sweep(
    db, make_lease, notifier, rules, tenant
):
    await make_lease(grace_period_days=2)
    await process_scheduled_notifications(db, notifier, NOW)

    refreshed = await db.scalar(select(Tenant).where(Tenant.id == tenant.id))
    assert refreshed.status == TenantStatus.LEAD
