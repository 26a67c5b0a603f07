"""Activity (audit trail) model."""

import enum

from sqlalchemy import Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from ...database import Base, OrganizationScoped, TimestampMixin


class ActivityType(str, enum.Enum):
    TENANT_CREATED = "tenant_created"
    TENANT_UPDATED = "tenant_updated"
    TENANT_STATUS_CHANGED = "tenant_status_changed"
    LEASE_CREATED = "lease_created"
    LEASE_UPDATED = "lease_updated"
    LEASE_TERMINATED = "lease_terminated"
    PAYMENT_RECORDED = "payment_recorded"
    OTHER = "other"


class Activity(OrganizationScoped, TimestampMixin, Base):
    """One line of the organization's activity feed.

    ``actor_id`` is null for entries written by scheduled jobs.
    """

    __tablename__ = "activities"

    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    type: Mapped[ActivityType] = mapped_column(Enum(ActivityType), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    tenant_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True
    )
    property_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True
    )
    unit_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True
    )
    lease_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("lease_agreements.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_activities_org_created", "organization_id", "created_at"),
        Index("ix_activities_lease", "lease_id"),
    )

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, type={self.type})>"
