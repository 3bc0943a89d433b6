"""Payment ORM model for money received against a resident account."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class PaymentType(str, Enum):
    """What a payment is for."""

    RENT = "Rent"
    DEPOSIT = "Deposit"
    SERVICE_CHARGE = "ServiceCharge"
    WATER = "Water"
    """Settles a water reading; never touches due/account balances"""

    ADJUSTMENT = "Adjustment"
    """Signed correction: positive debits the account, negative credits it"""

    OTHER = "Other"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    FAILED = "Failed"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    MOBILE_MONEY = "Mobile Money"
    CHEQUE = "Cheque"
    CARD = "Card"


class Payment(Base, BaseModel):
    """Model representing a recorded payment or adjustment.

    rent_for_month is the "YYYY-MM" billing month the payment covers and
    is independent of the date the money arrived.
    """

    __tablename__ = "payments"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Payment amount; signed only for adjustments",
    )
    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Date the money was received",
    )
    type: Mapped[PaymentType] = mapped_column(
        nullable=False,
        index=True,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        nullable=False,
        default=PaymentStatus.PAID,
    )
    rent_for_month: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="Billing month covered, as YYYY-MM",
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="External reference (bank/mobile money transaction id)",
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    water_reading_id: Mapped[int | None] = mapped_column(
        ForeignKey("water_meter_readings.id"),
        nullable=True,
        comment="Water reading settled by this payment",
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        foreign_keys=[tenant_id],
    )
    edits: Mapped[list["PaymentEdit"]] = relationship(
        "PaymentEdit",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentEdit.id",
    )

    __table_args__ = (
        Index("idx_payment_tenant_date", "tenant_id", "payment_date"),
        Index("idx_payment_type_month", "type", "rent_for_month"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, tenant_id={self.tenant_id}, amount={self.amount}, "
            f"payment_date={self.payment_date}, type={self.type}, status={self.status}, "
            f"rent_for_month={self.rent_for_month!r})>"
        )


class PaymentEdit(Base, BaseModel):
    """Edit history entry holding the values a payment had before a correction."""

    __tablename__ = "payment_edits"

    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payments.id"),
        nullable=False,
        index=True,
    )
    editor: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Who made the correction",
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    previous_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    previous_notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    payment: Mapped["Payment"] = relationship("Payment", back_populates="edits")

    def __repr__(self) -> str:
        return (
            f"<PaymentEdit(id={self.id}, payment_id={self.payment_id}, editor={self.editor!r}, "
            f"previous_amount={self.previous_amount})>"
        )


__all__ = ["Payment", "PaymentEdit", "PaymentMethod", "PaymentStatus", "PaymentType"]
