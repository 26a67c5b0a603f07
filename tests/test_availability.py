import random
from datetime import timedelta

import pytest

from conftest import NOW
from leasehold_backend.core.exceptions import (
    AvailabilityConflictError,
    NotFoundError,
    ValidationError,
)
from leasehold_backend.modules.lease_management.availability import (
    AUTO_RENEW_BLOCK,
    END_BEFORE_START,
    OVERLAP,
    check_availability,
    find_future_lease,
    has_future_lease,
    intervals_overlap,
    require_availability,
)
from leasehold_backend.modules.lease_management.models import LeaseStatus


def day(n):
    return NOW + timedelta(days=n)


async def test_free_unit_is_available(db, unit):
    result = await check_availability(db, unit.id, day(0), day(30))
    assert result.valid
    assert result.reason is None


async def test_end_before_start_is_rejected(db, unit):
    result = await check_availability(db, unit.id, day(10), day(10))
    assert not result.valid
    assert result.reason == END_BEFORE_START


async def test_touching_intervals_conflict(db, unit, make_lease):
    await make_lease(start_date=day(0), end_date=day(30), status=LeaseStatus.ACTIVE)

    result = await check_availability(db, unit.id, day(30), day(60))
    assert result.reason == OVERLAP

    result = await check_availability(db, unit.id, day(-30), day(0))
    assert result.reason == OVERLAP


@pytest.mark.parametrize("status", [LeaseStatus.ENDED, LeaseStatus.CANCELLED])
async def test_finished_leases_do_not_block(db, unit, make_lease, status):
    await make_lease(start_date=day(0), end_date=day(30), status=status)
    result = await check_availability(db, unit.id, day(5), day(25))
    assert result.valid


async def test_other_units_do_not_block(db, other_unit, make_lease):
    await make_lease(start_date=day(0), end_date=day(30), status=LeaseStatus.ACTIVE)
    result = await check_availability(db, other_unit.id, day(5), day(25))
    assert result.valid


async def test_overlap_matches_interval_arithmetic(db, unit, make_lease):
    booked_start, booked_end = day(100), day(130)
    await make_lease(
        start_date=booked_start, end_date=booked_end, status=LeaseStatus.ACTIVE
    )

    rng = random.Random(20261016)
    for _ in range(150):
        start = day(rng.randint(60, 170)) + timedelta(hours=rng.randint(0, 23))
        end = start + timedelta(days=rng.randint(1, 45))
        result = await check_availability(db, unit.id, start, end)
        expected_conflict = intervals_overlap(start, end, booked_start, booked_end)
        assert result.valid is not expected_conflict, (start, end)
        if expected_conflict:
            assert result.reason == OVERLAP


async def test_auto_renew_lease_blocks_everything_after_its_start(db, unit, make_lease):
    await make_lease(
        start_date=day(0),
        end_date=day(30),
        status=LeaseStatus.ACTIVE,
        is_auto_renew=True,
        auto_renewal_notice_days=7,
    )

    far_future = await check_availability(db, unit.id, day(400), day(430))
    assert far_future.reason == AUTO_RENEW_BLOCK

    before = await check_availability(db, unit.id, day(-60), day(-1))
    assert before.valid


async def test_auto_renew_block_takes_precedence_over_overlap(db, unit, make_lease):
    await make_lease(
        start_date=day(0), end_date=day(30), status=LeaseStatus.ACTIVE
    )
    await make_lease(
        start_date=day(31),
        end_date=day(60),
        status=LeaseStatus.DRAFT,
        is_auto_renew=True,
    )

    result = await check_availability(db, unit.id, day(10), day(40))
    assert result.reason == AUTO_RENEW_BLOCK


async def test_excluded_lease_is_ignored(db, unit, make_lease):
    lease = await make_lease(
        start_date=day(0),
        end_date=day(30),
        status=LeaseStatus.ACTIVE,
        is_auto_renew=True,
    )

    assert not (await check_availability(db, unit.id, day(31), day(60))).valid
    result = await check_availability(
        db, unit.id, day(31), day(60), exclude_lease_id=lease.id
    )
    assert result.valid


async def test_require_availability_raises_conflict(db, unit, make_lease):
    await make_lease(start_date=day(0), end_date=day(30), status=LeaseStatus.ACTIVE)

    with pytest.raises(AvailabilityConflictError) as exc_info:
        await require_availability(db, unit.id, day(10), day(20))
    assert exc_info.value.message == OVERLAP
    assert exc_info.value.unit_id == unit.id


async def test_require_availability_rejects_inverted_dates(db, unit):
    with pytest.raises(ValidationError, match=END_BEFORE_START):
        await require_availability(db, unit.id, day(20), day(10))


async def test_require_availability_unknown_unit(db, unit):
    with pytest.raises(NotFoundError):
        await require_availability(db, unit.id + 999, day(0), day(10))


async def test_find_future_lease(db, make_lease):
    current = await make_lease(
        start_date=day(0), end_date=day(30), status=LeaseStatus.ACTIVE
    )
    assert not await has_future_lease(db, current)

    await make_lease(start_date=day(90), end_date=day(120))
    nearest = await make_lease(start_date=day(40), end_date=day(60))
    await make_lease(
        start_date=day(35), end_date=day(38), status=LeaseStatus.CANCELLED
    )

    future = await find_future_lease(db, current)
    assert future.id == nearest.id
