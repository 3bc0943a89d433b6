"""Owner ORM models: homeowners (PropertyOwner) and landlords."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class PropertyOwner(Base, BaseModel):
    """Model representing a homeowner who owns one or more units.

    Ownership is recorded as (property_id, unit_name) assignments so that a
    single owner can hold units across several properties.
    """

    __tablename__ = "property_owners"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Relationships
    assigned_units: Mapped[list["OwnerUnitAssignment"]] = relationship(
        "OwnerUnitAssignment",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    def owns(self, property_id: int, unit) -> bool:
        """Check whether this owner holds the given unit."""
        return any(
            a.property_id == property_id and a.unit_name == unit.name for a in self.assigned_units
        )

    def __repr__(self) -> str:
        return f"<PropertyOwner(id={self.id}, name={self.name!r})>"


class OwnerUnitAssignment(Base, BaseModel):
    """Link between a homeowner and a unit they own."""

    __tablename__ = "owner_unit_assignments"

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("property_owners.id"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
    )
    unit_name: Mapped[str] = mapped_column(String(100), nullable=False)

    owner: Mapped["PropertyOwner"] = relationship(
        "PropertyOwner",
        back_populates="assigned_units",
    )

    __table_args__ = (
        UniqueConstraint("property_id", "unit_name", name="uq_owner_assignment_unit"),
    )

    def __repr__(self) -> str:
        return (
            f"<OwnerUnitAssignment(owner_id={self.owner_id}, property_id={self.property_id}, "
            f"unit_name={self.unit_name!r})>"
        )


class Landlord(Base, BaseModel):
    """Model representing a client landlord whose units are managed for them."""

    __tablename__ = "landlords"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    units: Mapped[list["Unit"]] = relationship(  # noqa: F821
        "Unit",
        back_populates="landlord",
    )

    def owns(self, property_id: int, unit) -> bool:
        """Check whether the given unit is registered to this landlord."""
        return unit.landlord_id is not None and unit.landlord_id == self.id

    def __repr__(self) -> str:
        return f"<Landlord(id={self.id}, name={self.name!r})>"


__all__ = ["Landlord", "OwnerUnitAssignment", "PropertyOwner"]
