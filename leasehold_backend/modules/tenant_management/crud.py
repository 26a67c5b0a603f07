"""CRUD operations for tenants."""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Tenant, TenantStatus


async def get_tenant_by_id(
    db: AsyncSession, tenant_id: int, organization_id: int
) -> Tenant | None:
    """Get a tenant by ID within organization scope."""
    result = await db.execute(
        select(Tenant).where(
            and_(Tenant.id == tenant_id, Tenant.organization_id == organization_id)
        )
    )
    return result.scalar_one_or_none()


async def set_tenant_status(
    db: AsyncSession, tenant: Tenant, status: TenantStatus
) -> bool:
    """Set the tenant status; returns True when it actually changed."""
    if tenant.status == status:
        return False
    tenant.status = status
    await db.flush()
    return True
