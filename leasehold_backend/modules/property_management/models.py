"""Property and unit models.

Only the fields the lease engine reads are modelled here: names for
activity descriptions and the unit-level booking switch.
"""

from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...database import Base, OrganizationScoped, TimestampMixin


class Property(OrganizationScoped, TimestampMixin, Base):
    """A building or compound owned by the organization."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)

    units: Mapped[list["Unit"]] = relationship(
        "Unit", back_populates="property", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name})>"


class Unit(OrganizationScoped, TimestampMixin, Base):
    """A rentable unit inside a property."""

    __tablename__ = "units"

    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    monthly_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    annual_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    # Manually blocked by the operator (maintenance, owner use, ...)
    is_unavailable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    property: Mapped["Property"] = relationship("Property", back_populates="units")

    __table_args__ = (Index("ix_units_property", "property_id"),)

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, name={self.name})>"
