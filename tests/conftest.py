"""Pytest configuration and shared fixtures."""

import os

# Set test database URL BEFORE any imports from rentledger
# This ensures the SessionLocal and engine use an in-memory database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from rentledger.models import (  # noqa: E402
    Base,
    HandoverStatus,
    Lease,
    LeasePaymentStatus,
    ManagementStatus,
    OwnershipType,
    Payment,
    PaymentStatus,
    PaymentType,
    Property,
    ResidentType,
    Tenant,
    TenantStatus,
    Unit,
    UnitStatus,
)


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def make_tenant():
    """Build a transient Tenant with a lease (no database needed)."""

    def _make(
        tenant_id=1,
        resident_type=ResidentType.TENANT,
        property_id=1,
        unit_name="A1",
        rent="20000",
        lease_start=date(2024, 1, 1),
        due_balance="0",
        account_balance="0",
        last_billed_period=None,
        security_deposit="0",
        water_deposit="0",
        service_charge=None,
        with_lease=True,
    ):
        tenant = Tenant(
            id=tenant_id,
            name=f"Resident {tenant_id}",
            resident_type=resident_type,
            status=TenantStatus.ACTIVE,
            property_id=property_id,
            unit_name=unit_name,
            security_deposit=Decimal(security_deposit),
            water_deposit=Decimal(water_deposit),
            due_balance=Decimal(due_balance),
            account_balance=Decimal(account_balance),
        )
        if with_lease:
            tenant.lease = Lease(
                start_date=lease_start,
                rent=Decimal(rent),
                service_charge=Decimal(service_charge) if service_charge is not None else None,
                payment_status=LeasePaymentStatus.PENDING,
                last_billed_period=last_billed_period,
            )
        return tenant

    return _make


@pytest.fixture
def make_unit():
    """Build a transient Unit."""

    def _make(
        name="A1",
        rent_amount="20000",
        service_charge="2000",
        status=UnitStatus.RENTED,
        ownership=OwnershipType.SM,
        management_status=None,
        handover_status=None,
        handover_date=None,
        landlord_id=None,
    ):
        return Unit(
            name=name,
            rent_amount=Decimal(rent_amount) if rent_amount is not None else None,
            service_charge=Decimal(service_charge) if service_charge is not None else None,
            status=status,
            ownership=ownership,
            management_status=management_status,
            handover_status=handover_status,
            handover_date=handover_date,
            landlord_id=landlord_id,
        )

    return _make


@pytest.fixture
def make_property():
    """Build a transient Property holding the given units."""

    def _make(units, property_id=1, name="Greenview Court"):
        return Property(id=property_id, name=name, units=list(units))

    return _make


@pytest.fixture
def make_payment():
    """Build a transient Paid payment."""

    def _make(
        amount,
        payment_date,
        payment_type=PaymentType.RENT,
        tenant_id=1,
        rent_for_month=None,
        status=PaymentStatus.PAID,
        payment_id=None,
    ):
        return Payment(
            id=payment_id,
            tenant_id=tenant_id,
            amount=Decimal(str(amount)),
            payment_date=payment_date,
            type=payment_type,
            status=status,
            rent_for_month=rent_for_month,
        )

    return _make


@pytest.fixture
def client_unit(make_unit):
    """Landlord unit let for clients, handed over early in January 2024."""
    return make_unit(
        name="B2",
        rent_amount="50000",
        service_charge="5000",
        ownership=OwnershipType.LANDLORD,
        management_status=ManagementStatus.RENTED_FOR_CLIENTS,
        handover_status=HandoverStatus.HANDED_OVER,
        handover_date=date(2024, 1, 5),
        landlord_id=7,
    )
