"""Notification trigger collaborator: rules, outbox and processing."""

from .models import (
    NotificationChannel,
    NotificationOutbox,
    NotificationRule,
    NotificationTrigger,
    OutboxStatus,
)
from .schemas import NotificationResult

__all__ = [
    "NotificationChannel",
    "NotificationOutbox",
    "NotificationRule",
    "NotificationTrigger",
    "OutboxStatus",
    "NotificationResult",
]
