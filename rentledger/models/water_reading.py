"""Water meter reading ORM model (water bills are billed separately from rent)."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from rentledger.models import Base, BaseModel


class WaterBillStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"


class WaterMeterReading(Base, BaseModel):
    """Model representing one meter reading and the bill derived from it.

    amount = consumption * rate. The bill stays Pending until a Water
    payment referencing it is recorded.
    """

    __tablename__ = "water_meter_readings"

    tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=True,
        index=True,
        comment="Resident billed for this reading (null for vacant units)",
    )
    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
    )
    unit_name: Mapped[str] = mapped_column(String(100), nullable=False)

    prior_reading: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    current_reading: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    consumption: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rate: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Price per unit of consumption",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reading_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[WaterBillStatus] = mapped_column(
        nullable=False,
        default=WaterBillStatus.PENDING,
    )
    payment_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    __table_args__ = (
        Index("idx_water_property_unit", "property_id", "unit_name"),
        Index("idx_water_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<WaterMeterReading(id={self.id}, tenant_id={self.tenant_id}, "
            f"unit_name={self.unit_name!r}, consumption={self.consumption}, "
            f"amount={self.amount}, status={self.status})>"
        )


__all__ = ["WaterBillStatus", "WaterMeterReading"]
