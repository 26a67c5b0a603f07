"""Activity logging.

Activity rows are an audit trail, not part of the business state: a failure
to write one is logged and otherwise ignored so the operation that produced
it still succeeds.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.logging import get_logger
from .models import Activity, ActivityType

logger = get_logger("activity_log")


@dataclass
class ActivityLogData:
    type: ActivityType
    description: str
    tenant_id: int | None = None
    property_id: int | None = None
    unit_id: int | None = None
    lease_id: int | None = None


async def log_activity(
    db: AsyncSession,
    organization_id: int,
    data: ActivityLogData,
    actor_id: int | None = None,
) -> Activity | None:
    """Add an activity row inside a SAVEPOINT of the current transaction.

    Pending changes of the caller are flushed first (outside the savepoint)
    so their errors still propagate. Only the activity insert itself is
    allowed to fail silently.
    """
    await db.flush()

    activity = Activity(
        organization_id=organization_id,
        actor_id=actor_id,
        type=data.type,
        description=data.description,
        tenant_id=data.tenant_id,
        property_id=data.property_id,
        unit_id=data.unit_id,
        lease_id=data.lease_id,
    )
    try:
        async with db.begin_nested():
            db.add(activity)
    except SQLAlchemyError:
        logger.exception(
            "Failed to log activity",
            extra={
                "organization_id": organization_id,
                "activity_type": data.type.value,
                "lease_id": data.lease_id,
            },
        )
        return None
    return activity


async def get_activities(
    db: AsyncSession,
    organization_id: int,
    lease_id: int | None = None,
    limit: int = 50,
) -> list[Activity]:
    """Most recent activities first."""
    query = select(Activity).where(Activity.organization_id == organization_id)
    if lease_id is not None:
        query = query.where(Activity.lease_id == lease_id)
    result = await db.execute(
        query.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    )
    return list(result.scalars().all())
