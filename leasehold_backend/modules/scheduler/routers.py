"""Cron endpoints for the scheduled sweeps.

Each endpoint is called by an external scheduler with
``Authorization: Bearer <cron_secret>``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.utils import utc_now
from ...database import get_db
from ..auth.dependencies import CronAuthorized
from ..commons import BaseResponse
from ..notifications.processor import Notifier
from . import services
from .schemas import (
    CancelUnpaidSummary,
    ExpireSummary,
    NotificationSweepSummary,
    RenewalSummary,
)

router = APIRouter(prefix="/cron", tags=["Scheduler"], dependencies=[CronAuthorized])


@router.post("/cancel-unpaid-leases", response_model=BaseResponse[CancelUnpaidSummary])
async def cancel_unpaid_leases(db: Annotated[AsyncSession, Depends(get_db)]):
    """Cancel DRAFT leases left unpaid past their grace period."""
    summary = await services.cancel_unpaid_leases(db, utc_now())
    return BaseResponse(success=True, message=summary.message, data=summary)


@router.post("/end-expired-leases", response_model=BaseResponse[ExpireSummary])
async def end_expired_leases(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Notifier,
):
    """End ACTIVE leases past their end date."""
    summary = await services.end_expired_leases(db, notifier, utc_now())
    return BaseResponse(success=True, message=summary.message, data=summary)


@router.post("/process-auto-renewals", response_model=BaseResponse[RenewalSummary])
async def process_auto_renewals(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Notifier,
):
    """Renew auto-renew leases whose notice deadline has been reached."""
    summary = await services.process_auto_renewals(db, notifier, utc_now())
    return BaseResponse(success=True, message=summary.message, data=summary)


@router.post(
    "/process-notifications", response_model=BaseResponse[NotificationSweepSummary]
)
async def process_notifications(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Notifier,
):
    summary = await services.process_scheduled_notifications(db, notifier, utc_now())
    return BaseResponse(success=True, message=summary.message, data=summary)
