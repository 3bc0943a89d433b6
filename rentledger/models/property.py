"""Property and Unit ORM models for the managed estate."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class UnitStatus(str, Enum):
    """Occupancy state of a unit."""

    VACANT = "vacant"
    RENTED = "rented"
    AIRBNB = "airbnb"
    CLIENT_OCCUPIED = "client occupied"


class OwnershipType(str, Enum):
    """Who holds title to the unit."""

    SM = "SM"
    """Owned by the management company itself"""

    LANDLORD = "Landlord"
    """Owned by an external landlord/client"""


class ManagementStatus(str, Enum):
    """How the management company handles the unit."""

    RENTED_FOR_SM = "Rented for Soil Merchants"
    RENTED_FOR_CLIENTS = "Rented for Clients"
    """Let out by management on behalf of the owner (commission applies)"""

    CLIENT_MANAGED = "Client Managed"
    """Owner manages or occupies the unit; only service charge is billed"""

    AIRBNB = "Airbnb"


class HandoverStatus(str, Enum):
    """Whether a sold unit has been handed over to its owner."""

    PENDING = "Pending Hand Over"
    HANDED_OVER = "Handed Over"


class UnitType(str, Enum):
    """Layout classification of a unit."""

    STUDIO = "Studio"
    ONE_BEDROOM = "One Bedroom"
    TWO_BEDROOM = "Two Bedroom"
    THREE_BEDROOM = "Three Bedroom"
    SHOP = "Shop"


class Property(Base, BaseModel):
    """Model representing a building/estate containing rentable units."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name of the property",
    )
    address: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Residential, Commercial, Mixed",
    )

    # Relationships
    units: Mapped[list["Unit"]] = relationship(
        "Unit",
        back_populates="property",
        cascade="all, delete-orphan",
    )

    def find_unit(self, unit_name: str) -> "Unit | None":
        """Return the unit with the given name, or None."""
        for unit in self.units:
            if unit.name == unit_name:
                return unit
        return None

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name!r}, units={len(self.units)})>"


class Unit(Base, BaseModel):
    """Model representing a single rentable/ownable unit inside a property.

    Rent and service charge are the unit's standard amounts. A tenant's lease
    may carry a discounted rent; commission is always computed against the
    unit's standard rent.

    Homeowner units accrue service charge only after handover: a unit handed
    over on or before the 10th is billed from the next month, later handovers
    are billed from the month after next.
    """

    __tablename__ = "units"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Unit label, unique within its property (e.g. 'A1')",
    )

    status: Mapped[UnitStatus] = mapped_column(
        nullable=False,
        default=UnitStatus.VACANT,
    )
    ownership: Mapped[OwnershipType] = mapped_column(
        nullable=False,
        default=OwnershipType.SM,
    )
    unit_type: Mapped[UnitType | None] = mapped_column(nullable=True)
    management_status: Mapped[ManagementStatus | None] = mapped_column(nullable=True)

    rent_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Standard monthly rent for the unit",
    )
    service_charge: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Standard monthly service charge",
    )

    handover_status: Mapped[HandoverStatus | None] = mapped_column(nullable=True)
    handover_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Date the unit was handed over to its owner",
    )

    landlord_id: Mapped[int | None] = mapped_column(
        ForeignKey("landlords.id"),
        nullable=True,
        index=True,
    )

    # Relationships
    property: Mapped["Property"] = relationship(
        "Property",
        back_populates="units",
    )
    landlord: Mapped["Landlord | None"] = relationship(  # noqa: F821
        "Landlord",
        back_populates="units",
    )

    __table_args__ = (
        UniqueConstraint("property_id", "name", name="uq_unit_property_name"),
        Index("idx_unit_landlord_status", "landlord_id", "status"),
    )

    def is_handed_over(self) -> bool:
        return self.handover_status == HandoverStatus.HANDED_OVER

    def __repr__(self) -> str:
        return (
            f"<Unit(id={self.id}, property_id={self.property_id}, name={self.name!r}, "
            f"status={self.status}, rent_amount={self.rent_amount}, "
            f"service_charge={self.service_charge}, handover_date={self.handover_date})>"
        )


__all__ = [
    "HandoverStatus",
    "ManagementStatus",
    "OwnershipType",
    "Property",
    "Unit",
    "UnitStatus",
    "UnitType",
]
