"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from rentledger.models.owner import Landlord, OwnerUnitAssignment, PropertyOwner  # noqa: E402
from rentledger.models.payment import (  # noqa: E402
    Payment,
    PaymentEdit,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from rentledger.models.property import (  # noqa: E402
    HandoverStatus,
    ManagementStatus,
    OwnershipType,
    Property,
    Unit,
    UnitStatus,
    UnitType,
)
from rentledger.models.tenant import (  # noqa: E402
    Lease,
    LeasePaymentStatus,
    ResidentType,
    Tenant,
    TenantStatus,
)
from rentledger.models.water_reading import WaterBillStatus, WaterMeterReading  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "HandoverStatus",
    "Landlord",
    "Lease",
    "LeasePaymentStatus",
    "ManagementStatus",
    "OwnerUnitAssignment",
    "OwnershipType",
    "Payment",
    "PaymentEdit",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "Property",
    "PropertyOwner",
    "ResidentType",
    "Tenant",
    "TenantStatus",
    "Unit",
    "UnitStatus",
    "UnitType",
    "WaterBillStatus",
    "WaterMeterReading",
]
