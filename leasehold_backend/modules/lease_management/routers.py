"""Lease management API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import NotFoundError
from ...core.utils import utc_now
from ...database import get_db
from ..activity_log.services import get_activities
from ..auth.dependencies import CurrentUser
from ..commons import BaseResponse, PaginatedResponse
from ..notifications.processor import Notifier
from ..scheduler import services as scheduler_services
from ..scheduler.schemas import RenewalSummary
from . import crud, services
from .models import LeaseStatus
from .renewal import preview_eligible_renewals
from .schemas import (
    ActivityResponse,
    FutureLeaseCheck,
    LeaseCreate,
    LeaseResponse,
    LeaseUpdate,
    LeaseWithDetails,
    PaymentRecord,
    RenewalPreview,
)

router = APIRouter(prefix="/leases", tags=["Leases"])


# ----- Renewals -----


@router.get("/renewals/eligible", response_model=BaseResponse[list[RenewalPreview]])
async def list_eligible_renewals(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Leases the renewal sweep would renew right now."""
    previews = await preview_eligible_renewals(
        db, current_user.organization_id, utc_now()
    )
    return BaseResponse(success=True, data=previews)


@router.post("/renewals/process", response_model=BaseResponse[RenewalSummary])
async def process_renewals(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Notifier,
):
    """Run the renewal sweep for the caller's organization."""
    summary = await scheduler_services.process_auto_renewals(
        db, notifier, utc_now(), organization_id=current_user.organization_id
    )
    return BaseResponse(success=True, message=summary.message, data=summary)


# ----- Leases -----


@router.get("", response_model=BaseResponse[PaginatedResponse[LeaseWithDetails]])
async def list_leases(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: LeaseStatus | None = Query(None),
    unit_id: int | None = Query(None),
    tenant_id: int | None = Query(None),
):
    """Get leases with pagination and filtering."""
    skip = (page - 1) * page_size
    leases, total = await crud.get_leases(
        db,
        current_user.organization_id,
        skip=skip,
        limit=page_size,
        status=status,
        unit_id=unit_id,
        tenant_id=tenant_id,
    )
    return BaseResponse(
        success=True,
        data=PaginatedResponse.from_items(
            items=[LeaseWithDetails.model_validate(lease) for lease in leases],
            total=total,
            page=page,
            page_size=page_size,
        ),
    )


@router.post("", response_model=BaseResponse[LeaseWithDetails])
async def create_lease(
    data: LeaseCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    lease = await services.create_lease(
        db, current_user.organization_id, data, actor_id=current_user.id
    )
    return BaseResponse(
        success=True,
        message="Lease created successfully",
        data=LeaseWithDetails.model_validate(lease),
    )


@router.get("/{lease_id}", response_model=BaseResponse[LeaseWithDetails])
async def get_lease(
    lease_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    lease = await crud.get_lease_by_id(db, lease_id, current_user.organization_id)
    if not lease:
        raise NotFoundError(f"Lease with ID {lease_id} not found")
    return BaseResponse(success=True, data=LeaseWithDetails.model_validate(lease))


@router.patch("/{lease_id}", response_model=BaseResponse[LeaseWithDetails])
async def update_lease(
    lease_id: int,
    data: LeaseUpdate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Notifier,
):
    """Edit a lease, record or clear its payment, or change its status."""
    lease = await services.update_lease(
        db,
        current_user.organization_id,
        lease_id,
        data,
        notifier=notifier,
        now=utc_now(),
        actor_id=current_user.id,
    )
    return BaseResponse(
        success=True,
        message="Lease updated successfully",
        data=LeaseWithDetails.model_validate(lease),
    )


@router.delete("/{lease_id}", response_model=BaseResponse[None])
async def delete_lease(
    lease_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await services.delete_lease(
        db, current_user.organization_id, lease_id, actor_id=current_user.id
    )
    return BaseResponse(success=True, message="Lease deleted successfully")


@router.post("/{lease_id}/payment", response_model=BaseResponse[LeaseWithDetails])
async def record_payment(
    lease_id: int,
    data: PaymentRecord,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Notifier,
):
    """Mark the lease paid. A DRAFT lease becomes ACTIVE."""
    lease = await services.record_payment(
        db,
        current_user.organization_id,
        lease_id,
        data,
        notifier=notifier,
        now=utc_now(),
        actor_id=current_user.id,
    )
    return BaseResponse(
        success=True,
        message="Payment recorded successfully",
        data=LeaseWithDetails.model_validate(lease),
    )


@router.delete("/{lease_id}/payment", response_model=BaseResponse[LeaseWithDetails])
async def clear_payment(
    lease_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    lease = await services.clear_payment(
        db, current_user.organization_id, lease_id, actor_id=current_user.id
    )
    return BaseResponse(
        success=True,
        message="Payment cleared successfully",
        data=LeaseWithDetails.model_validate(lease),
    )


@router.get("/{lease_id}/future-lease", response_model=BaseResponse[FutureLeaseCheck])
async def check_future_lease(
    lease_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Whether the unit is already booked after this lease ends."""
    future = await services.check_future_lease(
        db, current_user.organization_id, lease_id
    )
    return BaseResponse(
        success=True,
        data=FutureLeaseCheck(
            has_future_lease=future is not None,
            future_lease=LeaseResponse.model_validate(future) if future else None,
        ),
    )


@router.get(
    "/{lease_id}/activities", response_model=BaseResponse[list[ActivityResponse]]
)
async def list_lease_activities(
    lease_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=200),
):
    lease = await crud.get_lease_by_id(db, lease_id, current_user.organization_id)
    if not lease:
        raise NotFoundError(f"Lease with ID {lease_id} not found")
    activities = await get_activities(
        db, current_user.organization_id, lease_id=lease_id, limit=limit
    )
    return BaseResponse(
        success=True,
        data=[ActivityResponse.model_validate(a) for a in activities],
    )
