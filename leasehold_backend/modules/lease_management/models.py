"""Lease agreement model.

A lease moves DRAFT -> ACTIVE -> ENDED, or DRAFT -> CANCELLED. Renewals form
a singly linked chain through ``renewed_from_id``; the unique constraint on
that column guarantees a lease has at most one successor.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...core.database_types import UTCDateTime
from ...database import Base, OrganizationScoped, TimestampMixin


class LeaseStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


class PaymentCycle(str, enum.Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    ANNUAL = "annual"


class DepositStatus(str, enum.Enum):
    HELD = "held"
    RETURNED = "returned"
    FORFEITED = "forfeited"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    VIRTUAL_ACCOUNT = "virtual_account"
    QRIS = "qris"
    MANUAL = "manual"


# Leases that occupy their unit for availability purposes.
OCCUPYING_STATUSES = (LeaseStatus.DRAFT, LeaseStatus.ACTIVE)


class LeaseAgreement(OrganizationScoped, TimestampMixin, Base):
    """A tenant's booking of a unit for a date interval."""

    __tablename__ = "lease_agreements"

    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="RESTRICT"), nullable=False
    )
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=False
    )

    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    payment_cycle: Mapped[PaymentCycle] = mapped_column(
        Enum(PaymentCycle), nullable=False
    )
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    deposit_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    deposit_status: Mapped[DepositStatus] = mapped_column(
        Enum(DepositStatus), nullable=False, default=DepositStatus.HELD
    )

    status: Mapped[LeaseStatus] = mapped_column(
        Enum(LeaseStatus), nullable=False, default=LeaseStatus.DRAFT
    )

    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        Enum(PaymentMethod), nullable=True
    )

    is_auto_renew: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    grace_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    auto_renewal_notice_days: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )

    renewed_from_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("lease_agreements.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships (load explicitly with selectinload; never lazy-load under asyncio)
    tenant = relationship("Tenant")
    unit = relationship("Unit")
    renewed_from = relationship(
        "LeaseAgreement",
        remote_side="LeaseAgreement.id",
        foreign_keys=[renewed_from_id],
        back_populates="renewed_to",
    )
    renewed_to = relationship(
        "LeaseAgreement",
        foreign_keys=[renewed_from_id],
        back_populates="renewed_from",
        uselist=False,
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("renewed_from_id", name="uq_lease_agreements_renewed_from"),
        Index("ix_lease_agreements_unit_status", "unit_id", "status"),
        Index("ix_lease_agreements_org_status", "organization_id", "status"),
        Index("ix_lease_agreements_tenant", "tenant_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<LeaseAgreement(id={self.id}, unit_id={self.unit_id}, "
            f"status={self.status})>"
        )
