"""Unit lookups used by the lease engine."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import Unit


async def get_unit_by_id(
    db: AsyncSession, unit_id: int, organization_id: int
) -> Unit | None:
    """Get a unit (with its property) within organization scope."""
    result = await db.execute(
        select(Unit)
        .where(and_(Unit.id == unit_id, Unit.organization_id == organization_id))
        .options(selectinload(Unit.property))
    )
    return result.scalar_one_or_none()


async def lock_unit(db: AsyncSession, unit_id: int) -> Unit | None:
    """Take a row lock on the unit for the rest of the transaction.

    Bookings on the same unit serialize on this lock, so an availability
    check made after acquiring it cannot be invalidated by a concurrent
    insert. SQLite ignores FOR UPDATE; it serializes writers anyway.
    """
    result = await db.execute(select(Unit).where(Unit.id == unit_id).with_for_update())
    return result.scalar_one_or_none()
