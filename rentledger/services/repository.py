"""Data access for billing services."""

from abc import ABC, abstractmethod
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rentledger.models import (
    Landlord,
    Payment,
    Property,
    PropertyOwner,
    Tenant,
    TenantStatus,
    Unit,
    WaterMeterReading,
)
from rentledger.services.errors import NotFoundError


class AccountRepository(ABC):
    """Read access to accounts and the history needed to bill them."""

    @abstractmethod
    def fetch_account(self, account_id: int) -> Tenant:
        """Return the account or raise NotFoundError."""

    @abstractmethod
    def lock_account(self, account_id: int) -> Tenant:
        """Return the account with its row locked for the current transaction."""

    @abstractmethod
    def fetch_unit(self, property_id: int, unit_name: str) -> Unit | None:
        ...

    @abstractmethod
    def fetch_payment_history(self, account_id: int) -> Sequence[Payment]:
        ...

    @abstractmethod
    def fetch_water_readings(self, account_id: int) -> Sequence[WaterMeterReading]:
        ...

    @abstractmethod
    def fetch_properties(self) -> Sequence[Property]:
        ...

    @abstractmethod
    def fetch_tenants(self) -> Sequence[Tenant]:
        """Active accounts only."""

    @abstractmethod
    def fetch_all_water_readings(self) -> Sequence[WaterMeterReading]:
        ...

    @abstractmethod
    def fetch_all_payments(self) -> Sequence[Payment]:
        ...

    @abstractmethod
    def fetch_owners(self) -> Sequence[PropertyOwner]:
        ...

    @abstractmethod
    def fetch_landlords(self) -> Sequence[Landlord]:
        ...


class SqlAlchemyAccountRepository(AccountRepository):
    """AccountRepository over a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def fetch_account(self, account_id: int) -> Tenant:
        tenant = self.session.get(Tenant, account_id)
        if tenant is None:
            raise NotFoundError(f"Tenant not found: {account_id}")
        return tenant

    def lock_account(self, account_id: int) -> Tenant:
        stmt = (
            select(Tenant)
            .where(Tenant.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        tenant = self.session.execute(stmt).scalar_one_or_none()
        if tenant is None:
            raise NotFoundError(f"Tenant not found: {account_id}")
        return tenant

    def fetch_unit(self, property_id: int, unit_name: str) -> Unit | None:
        stmt = select(Unit).where(Unit.property_id == property_id, Unit.name == unit_name)
        return self.session.execute(stmt).scalar_one_or_none()

    def fetch_property(self, property_id: int) -> Property | None:
        return self.session.get(Property, property_id)

    def lock_payment(self, payment_id: int) -> Payment:
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payment = self.session.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment record not found.")
        return payment

    def fetch_payment_history(self, account_id: int) -> Sequence[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.tenant_id == account_id)
            .order_by(Payment.payment_date, Payment.id)
        )
        return self.session.execute(stmt).scalars().all()

    def fetch_water_readings(self, account_id: int) -> Sequence[WaterMeterReading]:
        stmt = (
            select(WaterMeterReading)
            .where(WaterMeterReading.tenant_id == account_id)
            .order_by(WaterMeterReading.reading_date, WaterMeterReading.id)
        )
        return self.session.execute(stmt).scalars().all()

    def fetch_water_reading(self, reading_id: int) -> WaterMeterReading | None:
        return self.session.get(WaterMeterReading, reading_id)

    def fetch_properties(self) -> Sequence[Property]:
        stmt = select(Property).options(selectinload(Property.units)).order_by(Property.id)
        return self.session.execute(stmt).scalars().all()

    def fetch_tenants(self) -> Sequence[Tenant]:
        stmt = (
            select(Tenant)
            .where(Tenant.status == TenantStatus.ACTIVE)
            .options(selectinload(Tenant.lease))
            .order_by(Tenant.id)
        )
        return self.session.execute(stmt).scalars().all()

    def fetch_resident(self, property_id: int, unit_name: str) -> Tenant | None:
        """Active account occupying the given unit, if any."""
        stmt = select(Tenant).where(
            Tenant.property_id == property_id,
            Tenant.unit_name == unit_name,
            Tenant.status == TenantStatus.ACTIVE,
        )
        return self.session.execute(stmt).scalars().first()

    def fetch_all_water_readings(self) -> Sequence[WaterMeterReading]:
        return self.session.execute(select(WaterMeterReading)).scalars().all()

    def fetch_all_payments(self) -> Sequence[Payment]:
        stmt = select(Payment).order_by(Payment.payment_date, Payment.id)
        return self.session.execute(stmt).scalars().all()

    def fetch_owners(self) -> Sequence[PropertyOwner]:
        stmt = select(PropertyOwner).options(selectinload(PropertyOwner.assigned_units))
        return self.session.execute(stmt).scalars().all()

    def fetch_owner_for_unit(self, property_id: int, unit_name: str) -> PropertyOwner | None:
        for owner in self.fetch_owners():
            if any(
                a.property_id == property_id and a.unit_name == unit_name
                for a in owner.assigned_units
            ):
                return owner
        return None

    def fetch_landlords(self) -> Sequence[Landlord]:
        return self.session.execute(select(Landlord).order_by(Landlord.id)).scalars().all()


__all__ = ["AccountRepository", "SqlAlchemyAccountRepository"]
