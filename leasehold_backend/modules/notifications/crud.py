"""Queries for notification rules and the outbox."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import NotificationOutbox, NotificationRule, NotificationTrigger, OutboxStatus


async def get_active_rules(
    db: AsyncSession, organization_id: int, trigger: NotificationTrigger
) -> list[NotificationRule]:
    result = await db.execute(
        select(NotificationRule)
        .where(
            and_(
                NotificationRule.organization_id == organization_id,
                NotificationRule.trigger == trigger,
                NotificationRule.is_active.is_(True),
            )
        )
        .order_by(NotificationRule.id)
    )
    return list(result.scalars().all())


async def get_organization_ids_with_active_rules(db: AsyncSession) -> list[int]:
    result = await db.execute(
        select(NotificationRule.organization_id)
        .where(NotificationRule.is_active.is_(True))
        .distinct()
        .order_by(NotificationRule.organization_id)
    )
    return list(result.scalars().all())


async def get_retryable_outbox_ids(db: AsyncSession, max_attempts: int) -> list[int]:
    """Outbox entries never dispatched, or failed fewer than ``max_attempts`` times."""
    result = await db.execute(
        select(NotificationOutbox.id)
        .where(
            and_(
                NotificationOutbox.status.in_(
                    [OutboxStatus.PENDING, OutboxStatus.FAILED]
                ),
                NotificationOutbox.attempts < max_attempts,
            )
        )
        .order_by(NotificationOutbox.id)
    )
    return list(result.scalars().all())
