"""Notification rule and outbox models."""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ...core.database_types import UTCDateTime
from ...database import Base, OrganizationScoped, TimestampMixin


class NotificationTrigger(str, enum.Enum):
    PAYMENT_REMINDER = "payment_reminder"
    PAYMENT_LATE = "payment_late"
    PAYMENT_CONFIRMED = "payment_confirmed"
    LEASE_EXPIRING = "lease_expiring"
    LEASE_EXPIRED = "lease_expired"
    MANUAL = "manual"


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"


class OutboxStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationRule(OrganizationScoped, TimestampMixin, Base):
    """When to notify and over which channels.

    ``days_offset`` is only used by the scheduled triggers: PAYMENT_REMINDER
    and LEASE_EXPIRING look ``days_offset`` days ahead of the run date.
    """

    __tablename__ = "notification_rules"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    trigger: Mapped[NotificationTrigger] = mapped_column(
        Enum(NotificationTrigger), nullable=False
    )
    days_offset: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    channels: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_notification_rules_org_trigger", "organization_id", "trigger"),
    )

    def __repr__(self) -> str:
        return f"<NotificationRule(id={self.id}, trigger={self.trigger})>"


class NotificationOutbox(TimestampMixin, Base):
    """Intent to notify, written in the same transaction as the lease change.

    Rows are dispatched after the transaction commits. Rows left PENDING or
    FAILED (process crashed, channel down) are retried by the scheduled
    notifications sweep.
    """

    __tablename__ = "notification_outbox"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    trigger: Mapped[NotificationTrigger] = mapped_column(
        Enum(NotificationTrigger), nullable=False
    )
    related_entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[OutboxStatus] = mapped_column(
        Enum(OutboxStatus), nullable=False, default=OutboxStatus.PENDING
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispatched_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (Index("ix_notification_outbox_status", "status"),)

    def __repr__(self) -> str:
        return (
            f"<NotificationOutbox(id={self.id}, trigger={self.trigger}, "
            f"status={self.status})>"
        )
