"""
Transactional outbox for notification intents.

Lease mutations call ``enqueue_notification`` inside their transaction; the
entry commits (or rolls back) together with the lease change. Once the
caller has committed it passes the entry ids to ``dispatch_outbox``. Dispatch
problems are logged and recorded on the entry, never raised.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...core.logging import get_logger
from ...core.utils import utc_now
from . import crud
from .models import NotificationOutbox, NotificationTrigger, OutboxStatus
from .schemas import NotificationResult

logger = get_logger("notifications.outbox")

MAX_DISPATCH_ATTEMPTS = 5


async def enqueue_notification(
    db: AsyncSession,
    organization_id: int,
    trigger: NotificationTrigger,
    related_entity_id: int | None = None,
) -> NotificationOutbox:
    """Record an intent to notify. Does not commit."""
    entry = NotificationOutbox(
        organization_id=organization_id,
        trigger=trigger,
        related_entity_id=related_entity_id,
        status=OutboxStatus.PENDING,
        attempts=0,
    )
    db.add(entry)
    await db.flush()
    return entry


async def _dispatch_entry(
    db: AsyncSession, notifier, entry_id: int
) -> NotificationResult | None:
    entry = await db.get(NotificationOutbox, entry_id)
    if entry is None or entry.status == OutboxStatus.SENT:
        return None

    entry.attempts += 1
    try:
        result = await notifier.process(
            entry.organization_id, entry.trigger, entry.related_entity_id
        )
    except Exception as e:
        # Channel or processor failure: keep the entry for the next sweep
        logger.warning(
            f"Notification dispatch failed: {e}",
            extra={
                "outbox_id": entry.id,
                "trigger": entry.trigger.value,
                "related_entity_id": entry.related_entity_id,
                "attempts": entry.attempts,
            },
        )
        entry.status = OutboxStatus.FAILED
        entry.last_error = str(e)[:1000]
        await db.commit()
        return NotificationResult(failed=1, errors=[str(e)])

    entry.status = OutboxStatus.SENT
    entry.dispatched_at = utc_now()
    entry.last_error = "; ".join(result.errors)[:1000] or None
    await db.commit()
    return result


async def dispatch_outbox(
    db: AsyncSession, notifier, entry_ids: list[int]
) -> NotificationResult:
    """Dispatch committed outbox entries. Must be called after the commit."""
    total = NotificationResult()
    if not entry_ids:
        return total

    if not settings.notification_dispatch_enabled:
        logger.info(
            "Notification dispatch disabled, leaving entries pending",
            extra={"outbox_ids": entry_ids},
        )
        return total

    for entry_id in entry_ids:
        try:
            result = await _dispatch_entry(db, notifier, entry_id)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(
                "Failed to update notification outbox entry",
                extra={"outbox_id": entry_id},
            )
            continue
        if result is not None:
            total.merge(result)
    return total


async def dispatch_pending(
    db: AsyncSession, notifier, max_attempts: int = MAX_DISPATCH_ATTEMPTS
) -> tuple[int, NotificationResult]:
    """Retry every PENDING or FAILED entry below the attempt limit."""
    entry_ids = await crud.get_retryable_outbox_ids(db, max_attempts)
    if entry_ids:
        logger.info(f"Retrying {len(entry_ids)} outbox entries")
    return len(entry_ids), await dispatch_outbox(db, notifier, entry_ids)
