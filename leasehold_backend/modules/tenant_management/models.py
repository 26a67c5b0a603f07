"""Tenant model."""

import enum

from sqlalchemy import Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ...database import Base, OrganizationScoped, TimestampMixin


class TenantStatus(str, enum.Enum):
    """Where the tenant is in their rental lifecycle.

    LEAD: no lease yet. BOOKED: has a DRAFT lease. ACTIVE: holds at least one
    ACTIVE lease. EXPIRED: every lease has ended.
    """

    LEAD = "lead"
    BOOKED = "booked"
    ACTIVE = "active"
    EXPIRED = "expired"


class Tenant(OrganizationScoped, TimestampMixin, Base):
    """A renter within an organization."""

    __tablename__ = "tenants"

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus), nullable=False, default=TenantStatus.LEAD
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_tenants_org_status", "organization_id", "status"),)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.full_name}, status={self.status})>"
