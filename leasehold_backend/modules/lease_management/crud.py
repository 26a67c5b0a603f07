"""CRUD operations and sweep queries for lease agreements."""

from datetime import datetime

from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from ..property_management.models import Unit
from .models import LeaseAgreement, LeaseStatus


def _with_relations(query):
    return query.options(
        selectinload(LeaseAgreement.tenant),
        selectinload(LeaseAgreement.unit).selectinload(Unit.property),
    )


def _has_no_successor():
    successor = aliased(LeaseAgreement)
    return ~exists().where(successor.renewed_from_id == LeaseAgreement.id)


# ----- Lease CRUD -----


async def get_lease_by_id(
    db: AsyncSession, lease_id: int, organization_id: int | None = None
) -> LeaseAgreement | None:
    """Get a lease with tenant, unit and property loaded.

    ``organization_id`` is omitted only by scheduled jobs, which act on
    every organization. Rows already in the session are refreshed.
    """
    query = (
        select(LeaseAgreement)
        .where(LeaseAgreement.id == lease_id)
        .execution_options(populate_existing=True)
    )
    if organization_id is not None:
        query = query.where(LeaseAgreement.organization_id == organization_id)
    result = await db.execute(_with_relations(query))
    return result.scalar_one_or_none()


async def lock_lease(
    db: AsyncSession, lease_id: int, organization_id: int | None = None
) -> LeaseAgreement | None:
    """Re-read a lease under a row lock, with relations loaded."""
    query = (
        select(LeaseAgreement)
        .where(LeaseAgreement.id == lease_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if organization_id is not None:
        query = query.where(LeaseAgreement.organization_id == organization_id)
    result = await db.execute(_with_relations(query))
    return result.scalar_one_or_none()


async def get_leases(
    db: AsyncSession,
    organization_id: int,
    skip: int = 0,
    limit: int = 100,
    status: LeaseStatus | None = None,
    unit_id: int | None = None,
    tenant_id: int | None = None,
) -> tuple[list[LeaseAgreement], int]:
    """Get leases with filtering and pagination, newest start first."""
    conditions = [LeaseAgreement.organization_id == organization_id]
    if status:
        conditions.append(LeaseAgreement.status == status)
    if unit_id:
        conditions.append(LeaseAgreement.unit_id == unit_id)
    if tenant_id:
        conditions.append(LeaseAgreement.tenant_id == tenant_id)

    count_result = await db.execute(
        select(func.count(LeaseAgreement.id)).where(and_(*conditions))
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        _with_relations(
            select(LeaseAgreement)
            .where(and_(*conditions))
            .order_by(LeaseAgreement.start_date.desc(), LeaseAgreement.id.desc())
            .offset(skip)
            .limit(limit)
        )
    )
    return list(result.scalars().all()), total


async def get_successor(db: AsyncSession, lease_id: int) -> LeaseAgreement | None:
    """The lease renewed from ``lease_id``, if any."""
    result = await db.execute(
        select(LeaseAgreement).where(LeaseAgreement.renewed_from_id == lease_id)
    )
    return result.scalar_one_or_none()


async def count_other_leases(
    db: AsyncSession,
    tenant_id: int,
    exclude_lease_id: int,
    status: LeaseStatus | None = None,
) -> int:
    """Count the tenant's leases other than ``exclude_lease_id``."""
    query = select(func.count(LeaseAgreement.id)).where(
        and_(
            LeaseAgreement.tenant_id == tenant_id,
            LeaseAgreement.id != exclude_lease_id,
        )
    )
    if status is not None:
        query = query.where(LeaseAgreement.status == status)
    result = await db.execute(query)
    return result.scalar() or 0


async def create_lease(db: AsyncSession, **fields) -> LeaseAgreement:
    lease = LeaseAgreement(**fields)
    db.add(lease)
    await db.flush()
    return lease


async def delete_lease(db: AsyncSession, lease: LeaseAgreement) -> None:
    await db.delete(lease)
    await db.flush()


# ----- Sweep queries -----


async def get_unpaid_drafts_with_grace(
    db: AsyncSession, organization_id: int | None = None
) -> list[LeaseAgreement]:
    """DRAFT leases that have a grace period and no payment yet."""
    query = select(LeaseAgreement).where(
        and_(
            LeaseAgreement.status == LeaseStatus.DRAFT,
            LeaseAgreement.grace_period_days.is_not(None),
            LeaseAgreement.paid_at.is_(None),
        )
    )
    if organization_id is not None:
        query = query.where(LeaseAgreement.organization_id == organization_id)
    result = await db.execute(_with_relations(query.order_by(LeaseAgreement.id)))
    return list(result.scalars().all())


async def get_unpaid_drafts(
    db: AsyncSession, organization_id: int
) -> list[LeaseAgreement]:
    result = await db.execute(
        select(LeaseAgreement)
        .where(
            and_(
                LeaseAgreement.organization_id == organization_id,
                LeaseAgreement.status == LeaseStatus.DRAFT,
                LeaseAgreement.paid_at.is_(None),
            )
        )
        .order_by(LeaseAgreement.id)
    )
    return list(result.scalars().all())


async def get_active_leases_ended_before(
    db: AsyncSession, now: datetime
) -> list[LeaseAgreement]:
    result = await db.execute(
        _with_relations(
            select(LeaseAgreement)
            .where(
                and_(
                    LeaseAgreement.status == LeaseStatus.ACTIVE,
                    LeaseAgreement.end_date < now,
                )
            )
            .order_by(LeaseAgreement.organization_id, LeaseAgreement.id)
        )
    )
    return list(result.scalars().all())


async def get_auto_renew_candidates(
    db: AsyncSession, organization_id: int | None = None
) -> list[LeaseAgreement]:
    """ACTIVE auto-renew leases with notice days and no successor yet.

    The notice deadline is applied by the caller, which owns ``now``.
    """
    query = select(LeaseAgreement).where(
        and_(
            LeaseAgreement.status == LeaseStatus.ACTIVE,
            LeaseAgreement.is_auto_renew.is_(True),
            LeaseAgreement.auto_renewal_notice_days.is_not(None),
            _has_no_successor(),
        )
    )
    if organization_id is not None:
        query = query.where(LeaseAgreement.organization_id == organization_id)
    result = await db.execute(_with_relations(query.order_by(LeaseAgreement.id)))
    return list(result.scalars().all())


async def get_active_leases_spanning(
    db: AsyncSession, organization_id: int, day_start: datetime, day_end: datetime
) -> list[LeaseAgreement]:
    """ACTIVE leases whose interval touches the day ``[day_start, day_end)``."""
    result = await db.execute(
        select(LeaseAgreement)
        .where(
            and_(
                LeaseAgreement.organization_id == organization_id,
                LeaseAgreement.status == LeaseStatus.ACTIVE,
                LeaseAgreement.start_date < day_end,
                LeaseAgreement.end_date >= day_start,
            )
        )
        .order_by(LeaseAgreement.id)
    )
    return list(result.scalars().all())


async def get_active_leases_ending_between(
    db: AsyncSession, organization_id: int, day_start: datetime, day_end: datetime
) -> list[LeaseAgreement]:
    result = await db.execute(
        select(LeaseAgreement)
        .where(
            and_(
                LeaseAgreement.organization_id == organization_id,
                LeaseAgreement.status == LeaseStatus.ACTIVE,
                LeaseAgreement.end_date >= day_start,
                LeaseAgreement.end_date < day_end,
            )
        )
        .order_by(LeaseAgreement.id)
    )
    return list(result.scalars().all())
