"""Tenant (resident account) and Lease ORM models."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class ResidentType(str, Enum):
    """Kind of resident holding the account."""

    TENANT = "Tenant"
    """Pays monthly rent"""

    HOMEOWNER = "Homeowner"
    """Owns the unit; pays monthly service charge after handover"""


class TenantStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class LeasePaymentStatus(str, Enum):
    """Payment standing of an account for the current month."""

    PAID = "Paid"
    PENDING = "Pending"
    OVERDUE = "Overdue"


class Tenant(Base, BaseModel):
    """Model representing a resident's billing account.

    due_balance and account_balance are both non-negative and at most one
    of them is non-zero once a payment or reconciliation has settled:
    money owed lives in due_balance, prepaid credit in account_balance.
    Water bills are tracked on WaterMeterReading and never enter either.
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    resident_type: Mapped[ResidentType] = mapped_column(
        nullable=False,
        default=ResidentType.TENANT,
        comment="Tenant (rent) or Homeowner (service charge)",
    )
    status: Mapped[TenantStatus] = mapped_column(
        nullable=False,
        default=TenantStatus.ACTIVE,
        index=True,
    )

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    unit_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Name of the occupied unit within the property",
    )

    security_deposit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    water_deposit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    due_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Amount currently owed (rent/service charge only)",
    )
    account_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Prepaid credit available for future charges",
    )

    # Relationships
    lease: Mapped["Lease | None"] = relationship(
        "Lease",
        back_populates="tenant",
        uselist=False,
        cascade="all, delete-orphan",
    )
    property: Mapped["Property"] = relationship(  # noqa: F821
        "Property",
        foreign_keys=[property_id],
    )

    __table_args__ = (Index("idx_tenant_property_unit", "property_id", "unit_name"),)

    def __repr__(self) -> str:
        return (
            f"<Tenant(id={self.id}, name={self.name!r}, resident_type={self.resident_type}, "
            f"unit_name={self.unit_name!r}, due_balance={self.due_balance}, "
            f"account_balance={self.account_balance})>"
        )


class Lease(Base, BaseModel):
    """Lease terms and billing cursor for a tenant account.

    last_billed_period is the most recent "YYYY-MM" month already charged
    into due_balance. Empty means billing starts from the account's anchor.
    """

    __tablename__ = "leases"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        unique=True,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    rent: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Agreed monthly rent (may differ from the unit's standard rent)",
    )
    service_charge: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Fallback monthly service charge when the unit is unavailable",
    )

    payment_status: Mapped[LeasePaymentStatus] = mapped_column(
        nullable=False,
        default=LeasePaymentStatus.PENDING,
    )
    last_billed_period: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="Last month billed, as YYYY-MM",
    )
    last_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    tenant: Mapped["Tenant"] = relationship(
        "Tenant",
        back_populates="lease",
    )

    def __repr__(self) -> str:
        return (
            f"<Lease(id={self.id}, tenant_id={self.tenant_id}, start_date={self.start_date}, "
            f"rent={self.rent}, payment_status={self.payment_status}, "
            f"last_billed_period={self.last_billed_period!r})>"
        )


__all__ = [
    "Lease",
    "LeasePaymentStatus",
    "ResidentType",
    "Tenant",
    "TenantStatus",
]
