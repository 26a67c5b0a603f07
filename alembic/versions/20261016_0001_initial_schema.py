"""Initial schema for the Leasehold lease lifecycle service

Revision ID: 0001
Revises:
Create Date: 2026-10-16

Creates all tables for:
- Organizations
- Property Management (properties, units)
- Tenant Management (tenants)
- Lease Management (lease_agreements)
- Activity feed (activities)
- Notifications (notification_rules, notification_outbox)
"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOTIFICATION_TRIGGERS = (
    "PAYMENT_REMINDER",
    "PAYMENT_LATE",
    "PAYMENT_CONFIRMED",
    "LEASE_EXPIRING",
    "LEASE_EXPIRED",
    "MANUAL",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _scoped() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("uuid", sa.String(36), nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=False),
    ]


def _scoped_constraints(table: str) -> list:
    return [
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("uuid", name=f"uq_{table}_uuid"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
    ]


def upgrade() -> None:
    """Create all tables."""

    # organizations - top-level SaaS tenant
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("uuid", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("uuid", name="uq_organizations_uuid"),
    )

    # =====================
    # PROPERTY MANAGEMENT
    # =====================

    op.create_table(
        "properties",
        *_scoped(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(120), nullable=True),
        *_timestamps(),
        *_scoped_constraints("properties"),
    )
    op.create_index("ix_properties_organization_id", "properties", ["organization_id"])

    op.create_table(
        "units",
        *_scoped(),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("daily_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("monthly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("annual_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_unavailable", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        *_scoped_constraints("units"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_units_organization_id", "units", ["organization_id"])
    op.create_index("ix_units_property", "units", ["property_id"])

    # =====================
    # TENANT MANAGEMENT
    # =====================

    op.create_table(
        "tenants",
        *_scoped(),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("status", sa.Enum("LEAD", "BOOKED", "ACTIVE", "EXPIRED", name="tenantstatus"), nullable=False, server_default="LEAD"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        *_scoped_constraints("tenants"),
    )
    op.create_index("ix_tenants_organization_id", "tenants", ["organization_id"])
    op.create_index("ix_tenants_org_status", "tenants", ["organization_id", "status"])

    # =====================
    # LEASE MANAGEMENT
    # =====================

    op.create_table(
        "lease_agreements",
        *_scoped(),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("payment_cycle", sa.Enum("DAILY", "MONTHLY", "ANNUAL", name="paymentcycle"), nullable=False),
        sa.Column("rent_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("deposit_status", sa.Enum("HELD", "RETURNED", "FORFEITED", name="depositstatus"), nullable=False, server_default="HELD"),
        sa.Column("status", sa.Enum("DRAFT", "ACTIVE", "ENDED", "CANCELLED", name="leasestatus"), nullable=False, server_default="DRAFT"),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("payment_status", sa.Enum("PENDING", "PROCESSING", "COMPLETED", "FAILED", "REFUNDED", name="paymentstatus"), nullable=False, server_default="PENDING"),
        sa.Column("payment_method", sa.Enum("CASH", "BANK_TRANSFER", "VIRTUAL_ACCOUNT", "QRIS", "MANUAL", name="paymentmethod"), nullable=True),
        sa.Column("is_auto_renew", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("grace_period_days", sa.Integer(), nullable=True),
        sa.Column("auto_renewal_notice_days", sa.Integer(), nullable=True),
        sa.Column("renewed_from_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        *_scoped_constraints("lease_agreements"),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["renewed_from_id"], ["lease_agreements.id"], ondelete="SET NULL"),
        # A lease has at most one successor
        sa.UniqueConstraint("renewed_from_id", name="uq_lease_agreements_renewed_from"),
    )
    op.create_index("ix_lease_agreements_organization_id", "lease_agreements", ["organization_id"])
    op.create_index("ix_lease_agreements_unit_status", "lease_agreements", ["unit_id", "status"])
    op.create_index("ix_lease_agreements_org_status", "lease_agreements", ["organization_id", "status"])
    op.create_index("ix_lease_agreements_tenant", "lease_agreements", ["tenant_id"])

    # =====================
    # ACTIVITY FEED
    # =====================

    op.create_table(
        "activities",
        *_scoped(),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column(
            "type",
            sa.Enum(
                "TENANT_CREATED",
                "TENANT_UPDATED",
                "TENANT_STATUS_CHANGED",
                "LEASE_CREATED",
                "LEASE_UPDATED",
                "LEASE_TERMINATED",
                "PAYMENT_RECORDED",
                "OTHER",
                name="activitytype",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("property_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("lease_id", sa.Integer(), nullable=True),
        *_timestamps(),
        *_scoped_constraints("activities"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["lease_id"], ["lease_agreements.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_activities_organization_id", "activities", ["organization_id"])
    op.create_index("ix_activities_org_created", "activities", ["organization_id", "created_at"])
    op.create_index("ix_activities_lease", "activities", ["lease_id"])

    # =====================
    # NOTIFICATIONS
    # =====================

    op.create_table(
        "notification_rules",
        *_scoped(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("trigger", sa.Enum(*NOTIFICATION_TRIGGERS, name="notificationtrigger"), nullable=False),
        sa.Column("days_offset", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("channels", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        *_scoped_constraints("notification_rules"),
    )
    op.create_index("ix_notification_rules_organization_id", "notification_rules", ["organization_id"])
    op.create_index("ix_notification_rules_org_trigger", "notification_rules", ["organization_id", "trigger"])

    op.create_table(
        "notification_outbox",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=False),
        sa.Column("trigger", sa.Enum(*NOTIFICATION_TRIGGERS, name="notificationtrigger"), nullable=False),
        sa.Column("related_entity_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.Enum("PENDING", "SENT", "FAILED", name="outboxstatus"), nullable=False, server_default="PENDING"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notification_outbox_status", "notification_outbox", ["status"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("notification_outbox")
    op.drop_table("notification_rules")
    op.drop_table("activities")
    op.drop_table("lease_agreements")
    op.drop_table("tenants")
    op.drop_table("units")
    op.drop_table("properties")
    op.drop_table("organizations")
