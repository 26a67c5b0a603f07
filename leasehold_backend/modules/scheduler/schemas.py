"""Summaries returned by the scheduled sweeps."""

from datetime import datetime

from pydantic import BaseModel, Field

from ..notifications.models import NotificationTrigger
from ..notifications.schemas import NotificationResult


class SweepDetail(BaseModel):
    lease_id: int
    tenant_name: str
    unit_name: str
    success: bool
    error: str | None = None


class SweepSummary(BaseModel):
    success: bool = True
    message: str
    processed: int = 0
    failed: int = 0
    details: list[SweepDetail] = Field(default_factory=list)
    processed_at: datetime


class CancelUnpaidSummary(SweepSummary):
    cancelled: int = 0


class OrganizationNotifications(NotificationResult):
    organization_id: int


class ExpireSummary(SweepSummary):
    ended: int = 0
    notifications: list[OrganizationNotifications] = Field(default_factory=list)


class RenewalSummary(SweepSummary):
    succeeded: int = 0


class TriggerNotifications(NotificationResult):
    organization_id: int
    trigger: NotificationTrigger


class NotificationSweepSummary(BaseModel):
    success: bool = True
    message: str
    organizations: int = 0
    results: list[TriggerNotifications] = Field(default_factory=list)
    outbox_retried: int = 0
    outbox: NotificationResult = Field(default_factory=NotificationResult)
    processed_at: datetime
