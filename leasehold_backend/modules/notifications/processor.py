"""
Rule-driven notification processing.

``NotificationProcessor`` is the contract the lease engine depends on.
``RuleNotificationProcessor`` is the default implementation: it evaluates
the organization's active rules for a trigger and hands one message per
channel to a ``NotificationSender``. Real channel integrations (email,
WhatsApp, Telegram) live outside this service and plug in as senders.
"""

from typing import Annotated, Protocol

from fastapi import Depends
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ...core.exceptions import ExternalServiceError
from ...core.logging import get_logger
from ...core.utils import unit_label
from ...database import AsyncSessionLocal
from ..lease_management.models import LeaseAgreement
from ..property_management.models import Unit
from . import crud
from .models import NotificationChannel, NotificationTrigger
from .schemas import NotificationResult, Recipient

logger = get_logger("notifications")

MESSAGES: dict[NotificationTrigger, tuple[str, str]] = {
    NotificationTrigger.PAYMENT_REMINDER: (
        "Rent reminder for {unit_name}",
        "Hi {tenant_name}, your rent of {rent_amount} for {unit_name} is due soon.",
    ),
    NotificationTrigger.PAYMENT_LATE: (
        "Overdue rent for {unit_name}",
        "Hi {tenant_name}, we have not received payment for your lease of "
        "{unit_name} starting {start_date}.",
    ),
    NotificationTrigger.PAYMENT_CONFIRMED: (
        "Payment received",
        "Hi {tenant_name}, we received your payment for {unit_name}. Thank you!",
    ),
    NotificationTrigger.LEASE_EXPIRING: (
        "Your lease is ending soon",
        "Hi {tenant_name}, your lease of {unit_name} ends on {end_date}.",
    ),
    NotificationTrigger.LEASE_EXPIRED: (
        "Your lease has ended",
        "Hi {tenant_name}, your lease of {unit_name} ended on {end_date}.",
    ),
    NotificationTrigger.MANUAL: (
        "Message about {unit_name}",
        "Hi {tenant_name}, please contact the management office.",
    ),
}


class NotificationProcessor(Protocol):
    async def process(
        self,
        organization_id: int,
        trigger: NotificationTrigger,
        related_entity_id: int | None = None,
    ) -> NotificationResult: ...


class NotificationSender(Protocol):
    async def send(
        self,
        channel: NotificationChannel,
        recipient: Recipient,
        subject: str,
        body: str,
    ) -> None:
        """Deliver one message; raise ExternalServiceError on failure."""
        ...


class LoggingNotificationSender:
    """Sender used when no channel integration is configured."""

    async def send(
        self,
        channel: NotificationChannel,
        recipient: Recipient,
        subject: str,
        body: str,
    ) -> None:
        logger.info(
            f"Notification via {channel.value} to {recipient.name}: {subject}",
            extra={"channel": channel.value, "recipient": recipient.name},
        )


def _address_for(channel: NotificationChannel, recipient: Recipient) -> str | None:
    if channel == NotificationChannel.EMAIL:
        return recipient.email
    return recipient.phone


class RuleNotificationProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        sender: NotificationSender | None = None,
    ):
        self.session_factory = session_factory
        self.sender = sender or LoggingNotificationSender()

    async def _lease_context(
        self, db: AsyncSession, organization_id: int, lease_id: int
    ) -> tuple[Recipient, dict] | None:
        result = await db.execute(
            select(LeaseAgreement)
            .where(
                and_(
                    LeaseAgreement.id == lease_id,
                    LeaseAgreement.organization_id == organization_id,
                )
            )
            .options(
                selectinload(LeaseAgreement.tenant),
                selectinload(LeaseAgreement.unit).selectinload(Unit.property),
            )
        )
        lease = result.scalar_one_or_none()
        if lease is None or lease.tenant is None:
            return None

        tenant = lease.tenant
        recipient = Recipient(name=tenant.full_name, email=tenant.email, phone=tenant.phone)
        variables = {
            "tenant_name": tenant.full_name,
            "unit_name": unit_label(lease.unit.property.name, lease.unit.name),
            "start_date": lease.start_date.date().isoformat(),
            "end_date": lease.end_date.date().isoformat(),
            "rent_amount": f"{lease.rent_amount:,.2f}",
        }
        return recipient, variables

    async def process(
        self,
        organization_id: int,
        trigger: NotificationTrigger,
        related_entity_id: int | None = None,
    ) -> NotificationResult:
        result = NotificationResult()

        async with self.session_factory() as db:
            rules = await crud.get_active_rules(db, organization_id, trigger)
            if not rules:
                return result
            context = None
            if related_entity_id is not None:
                context = await self._lease_context(
                    db, organization_id, related_entity_id
                )

        subject_template, body_template = MESSAGES[trigger]

        for rule in rules:
            result.processed += 1

            if context is None:
                result.errors.append(f"No recipients found for rule: {rule.name}")
                continue
            recipient, variables = context
            subject = subject_template.format(**variables)
            body = body_template.format(**variables)

            for channel_name in rule.channels:
                try:
                    channel = NotificationChannel(channel_name.lower())
                except ValueError:
                    result.failed += 1
                    result.errors.append(
                        f"Unknown channel {channel_name} in rule: {rule.name}"
                    )
                    continue

                if not _address_for(channel, recipient):
                    result.errors.append(
                        f"{recipient.name} has no address for channel {channel.value}"
                    )
                    continue

                try:
                    await self.sender.send(channel, recipient, subject, body)
                    result.sent += 1
                except ExternalServiceError as e:
                    result.failed += 1
                    result.errors.append(e.message)

        logger.debug(
            f"Processed {trigger.value} for organization {organization_id}",
            extra={"result": result.model_dump()},
        )
        return result


def get_notification_processor() -> NotificationProcessor:
    """FastAPI dependency; tests override it with a recording fake."""
    return RuleNotificationProcessor()


Notifier = Annotated[NotificationProcessor, Depends(get_notification_processor)]
