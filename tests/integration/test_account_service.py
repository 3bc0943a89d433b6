"""Integration tests for account operations against a real database session."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from rentledger.models import (
    HandoverStatus,
    Landlord,
    OwnershipType,
    OwnerUnitAssignment,
    Payment,
    PaymentEdit,
    PaymentType,
    Property,
    PropertyOwner,
    ResidentType,
    Tenant,
    TenantStatus,
    Unit,
    UnitStatus,
    WaterBillStatus,
)
from rentledger.services.account_service import AccountService, PaymentEntry
from rentledger.services.arrears_service import ArrearsService
from rentledger.services.errors import InconsistentStateError, NotFoundError, ValidationError

pytestmark = pytest.mark.integration


@pytest.fixture
def estate(db_session):
    """One property with a rental unit, a homeowner unit and a landlord unit."""
    landlord = Landlord(name="Acme Lettings", email="lettings@acme.test")
    prop = Property(
        name="Greenview Court",
        address="12 Hill Road",
        units=[
            Unit(name="A1", rent_amount=Decimal("20000"), service_charge=Decimal("2000")),
            Unit(
                name="E1",
                service_charge=Decimal("3000"),
                handover_status=HandoverStatus.HANDED_OVER,
                handover_date=date(2024, 1, 5),
            ),
            Unit(
                name="B2",
                rent_amount=Decimal("50000"),
                service_charge=Decimal("5000"),
                ownership=OwnershipType.LANDLORD,
                handover_status=HandoverStatus.HANDED_OVER,
                handover_date=date(2024, 1, 20),
                landlord=landlord,
            ),
        ],
    )
    db_session.add_all([landlord, prop])
    db_session.flush()
    owner = PropertyOwner(
        name="Jane Owner",
        email="jane@example.test",
        assigned_units=[OwnerUnitAssignment(property_id=prop.id, unit_name="E1")],
    )
    db_session.add(owner)
    db_session.commit()
    return prop


@pytest.fixture
def service(db_session):
    return AccountService(db_session)


@pytest.fixture
def tenant(service, estate):
    """Tenant on A1 from 1 January 2024 with a 20,000 security deposit."""
    return service.open_account(
        name="John Tenant",
        property_id=estate.id,
        unit_name="A1",
        resident_type=ResidentType.TENANT,
        lease_start=date(2024, 1, 1),
        rent=Decimal("20000"),
        security_deposit=Decimal("20000"),
        as_of=date(2024, 1, 1),
    )


class TestOpenAccount:
    """Test account onboarding."""

    def test_tenant_opening_balance(self, tenant, db_session):
        """Test first month plus deposit is owed and the lease month is marked billed."""
        assert tenant.id is not None
        assert tenant.due_balance == Decimal("40000")
        assert tenant.account_balance == Decimal("0")
        assert tenant.lease.last_billed_period == "2024-01"

        unit = db_session.query(Unit).filter_by(name="A1").one()
        assert unit.status == UnitStatus.RENTED

    def test_homeowner_opening_position(self, service, estate):
        homeowner = service.open_account(
            name="Jane Owner",
            property_id=estate.id,
            unit_name="E1",
            resident_type=ResidentType.HOMEOWNER,
            lease_start=date(2024, 1, 5),
            as_of=date(2024, 1, 5),
        )

        assert homeowner.due_balance == Decimal("0")
        assert homeowner.lease.last_billed_period == "2024-01"

    def test_unknown_property(self, service, estate):
        with pytest.raises(NotFoundError, match="selected property not found"):
            service.open_account("X", 999, "A1", ResidentType.TENANT, date(2024, 1, 1), rent=1)

    def test_unknown_unit(self, service, estate):
        with pytest.raises(NotFoundError, match="selected unit not found in property"):
            service.open_account("X", estate.id, "Z9", ResidentType.TENANT, date(2024, 1, 1), rent=1)

    def test_tenant_without_rent_rejected(self, service, estate, db_session):
        """Test that a rejected account leaves nothing behind."""
        with pytest.raises(ValidationError):
            service.open_account("X", estate.id, "A1", ResidentType.TENANT, date(2024, 1, 1))

        assert db_session.query(Tenant).count() == 0


class TestBatchProcessPayments:
    """Test atomic payment batches."""

    def test_batch_reconciles_then_applies(self, service, tenant, db_session):
        """Test two unbilled months are charged before the payments are applied."""
        result = service.batch_process_payments(
            tenant.id,
            [
                PaymentEntry(Decimal("40000"), date(2024, 1, 2), PaymentType.RENT),
                PaymentEntry(Decimal("30000"), date(2024, 3, 1), PaymentType.RENT, notes="March"),
            ],
            as_of=date(2024, 3, 10),
        )

        assert result.months_billed == 2
        assert result.state.due_balance == Decimal("10000")
        assert result.state.last_billed_period == "2024-03"
        assert result.updates["lease.last_payment_date"] == date(2024, 3, 1)
        assert [p.rent_for_month for p in result.payments] == ["2024-01", "2024-03"]

        db_session.refresh(tenant)
        assert tenant.due_balance == Decimal("10000")
        assert db_session.query(Payment).count() == 2

    def test_overpayment_carried_as_credit(self, service, tenant):
        result = service.batch_process_payments(
            tenant.id,
            [PaymentEntry(Decimal("45000"), date(2024, 1, 3), PaymentType.RENT)],
            as_of=date(2024, 1, 3),
        )

        assert result.state.due_balance == Decimal("0")
        assert result.state.account_balance == Decimal("5000")

    def test_invalid_entry_rolls_back_whole_batch(self, service, tenant, db_session):
        """Test that one bad entry means no payment and no balance change."""
        with pytest.raises(ValidationError, match="cannot be in the future"):
            service.batch_process_payments(
                tenant.id,
                [
                    PaymentEntry(Decimal("1000"), date(2024, 2, 1), PaymentType.RENT),
                    PaymentEntry(Decimal("1000"), date(2024, 4, 1), PaymentType.RENT),
                ],
                as_of=date(2024, 3, 10),
            )

        assert db_session.query(Payment).count() == 0
        reloaded = db_session.get(Tenant, tenant.id)
        assert reloaded.due_balance == Decimal("40000")
        assert reloaded.lease.last_billed_period == "2024-01"

    def test_empty_batch_rejected(self, service, tenant):
        with pytest.raises(ValidationError, match="No payment entries"):
            service.batch_process_payments(tenant.id, [], as_of=date(2024, 1, 3))

    def test_unknown_account(self, service, estate):
        with pytest.raises(NotFoundError):
            service.batch_process_payments(
                404, [PaymentEntry(Decimal("1"), date(2024, 1, 3), PaymentType.RENT)]
            )


class TestUpdatePayment:
    """Test payment corrections and their edit history."""

    @pytest.fixture
    def payment(self, service, tenant):
        result = service.batch_process_payments(
            tenant.id,
            [PaymentEntry(Decimal("40000"), date(2024, 1, 2), PaymentType.RENT, notes="Cash at office")],
            as_of=date(2024, 1, 2),
        )
        return result.payments[0]

    def test_edit_recorded_with_previous_values(self, service, payment, db_session):
        """Test the corrected payment keeps what it looked like before the edit."""
        edited = service.update_payment(
            payment.id,
            reason="Typo in amount",
            editor="admin",
            amount=Decimal("35000"),
            payment_date=date(2024, 1, 3),
            notes="Bank transfer",
            as_of=date(2024, 1, 10),
        )

        assert edited.amount == Decimal("35000")
        assert edited.payment_date == date(2024, 1, 3)
        assert edited.notes == "Bank transfer"
        assert len(edited.edits) == 1
        edit = edited.edits[0]
        assert edit.editor == "admin"
        assert edit.reason == "Typo in amount"
        assert edit.previous_amount == Decimal("40000")
        assert edit.previous_payment_date == date(2024, 1, 2)
        assert edit.previous_notes == "Cash at office"
        assert db_session.query(PaymentEdit).count() == 1

    def test_edits_accumulate(self, service, payment):
        service.update_payment(payment.id, "First fix", "admin", amount=Decimal("39000"), as_of=date(2024, 1, 10))
        edited = service.update_payment(
            payment.id, "Second fix", "clerk", amount=Decimal("38000"), as_of=date(2024, 1, 11)
        )

        assert [e.previous_amount for e in edited.edits] == [Decimal("40000"), Decimal("39000")]
        assert [e.editor for e in edited.edits] == ["admin", "clerk"]

    def test_balances_follow_after_forced_recalculation(self, service, tenant, payment, db_session):
        """Test the edit leaves balances alone until the operator repairs them."""
        service.update_payment(payment.id, "Short-paid", "admin", amount=Decimal("30000"), as_of=date(2024, 1, 10))

        db_session.refresh(tenant)
        assert tenant.due_balance == Decimal("0")
        with pytest.raises(InconsistentStateError):
            service.check_consistency(tenant.id, as_of=date(2024, 1, 10))

        state = service.force_recalculate_balance(tenant.id, "admin", as_of=date(2024, 1, 10))

        assert state.due_balance == Decimal("10000")

    def test_reason_required(self, service, payment, db_session):
        with pytest.raises(ValidationError, match="reason is required"):
            service.update_payment(payment.id, "  ", "admin", amount=Decimal("1"), as_of=date(2024, 1, 10))

        assert db_session.query(PaymentEdit).count() == 0

    def test_invalid_amount_rejected(self, service, payment, db_session):
        """Test a rejected correction leaves the payment and its history untouched."""
        with pytest.raises(ValidationError, match="greater than zero"):
            service.update_payment(payment.id, "Refund", "admin", amount=Decimal("-5"), as_of=date(2024, 1, 10))

        reloaded = db_session.get(Payment, payment.id)
        assert reloaded.amount == Decimal("40000")
        assert reloaded.edits == []

    def test_unknown_payment(self, service, tenant):
        with pytest.raises(NotFoundError, match="Payment record not found"):
            service.update_payment(404, "Fix", "admin", amount=Decimal("1"))


class TestWaterReadings:
    """Test water billing through meter readings."""

    def test_reading_billed_to_tenant_outside_balance(self, service, tenant, db_session):
        """Test the water amount stays on the reading while rent is reconciled."""
        reading = service.record_water_reading(
            tenant.property_id, "A1", 100, 110, date(2024, 3, 5), as_of=date(2024, 3, 5)
        )

        assert reading.tenant_id == tenant.id
        assert reading.amount == Decimal("1500")
        assert reading.status == WaterBillStatus.PENDING

        db_session.refresh(tenant)
        assert tenant.due_balance == Decimal("80000")

    def test_water_payment_settles_reading_only(self, service, tenant, db_session):
        reading = service.record_water_reading(
            tenant.property_id, "A1", 100, 110, date(2024, 3, 5), as_of=date(2024, 3, 5)
        )

        result = service.batch_process_payments(
            tenant.id,
            [
                PaymentEntry(
                    Decimal("1500"),
                    date(2024, 3, 6),
                    PaymentType.WATER,
                    water_reading_id=reading.id,
                )
            ],
            as_of=date(2024, 3, 6),
        )

        db_session.refresh(reading)
        assert reading.status == WaterBillStatus.PAID
        assert reading.payment_id == result.payments[0].id
        assert result.state.due_balance == Decimal("80000")

    def test_water_payment_for_other_tenants_reading(self, service, tenant, estate):
        reading = service.record_water_reading(
            estate.id, "E1", 0, 4, date(2024, 3, 5), as_of=date(2024, 3, 5)
        )

        with pytest.raises(NotFoundError, match="Water reading"):
            service.batch_process_payments(
                tenant.id,
                [PaymentEntry(Decimal("600"), date(2024, 3, 6), PaymentType.WATER, water_reading_id=reading.id)],
                as_of=date(2024, 3, 6),
            )

    def test_homeowner_account_created_for_owner(self, service, estate, db_session):
        """Test an owner-assigned unit without a resident gets a homeowner account."""
        reading = service.record_water_reading(
            estate.id, "E1", 0, 4, date(2024, 3, 5), as_of=date(2024, 3, 5)
        )

        resident = db_session.get(Tenant, reading.tenant_id)
        assert resident.name == "Jane Owner"
        assert resident.resident_type == ResidentType.HOMEOWNER
        assert resident.due_balance == Decimal("6000")
        assert resident.lease.last_billed_period == "2024-03"

    def test_homeowner_account_created_for_landlord(self, service, estate, db_session):
        reading = service.record_water_reading(
            estate.id, "B2", 0, 2, date(2024, 3, 5), as_of=date(2024, 3, 5)
        )

        resident = db_session.get(Tenant, reading.tenant_id)
        assert resident.name == "Acme Lettings"
        assert resident.due_balance == Decimal("5000")

    def test_unit_without_resident_or_owner(self, service, estate):
        with pytest.raises(NotFoundError, match="Could not find or create a resident record"):
            service.record_water_reading(estate.id, "A1", 0, 2, date(2024, 3, 5), as_of=date(2024, 3, 5))

    def test_meter_going_backwards_rejected(self, service, tenant):
        with pytest.raises(ValidationError, match="lower than the prior reading"):
            service.record_water_reading(
                tenant.property_id, "A1", 110, 100, date(2024, 3, 5), as_of=date(2024, 3, 5)
            )

    def test_pending_water_excluded_from_arrears(self, service, tenant, db_session):
        service.record_water_reading(
            tenant.property_id, "A1", 100, 110, date(2024, 3, 5), as_of=date(2024, 3, 5)
        )

        arrears = ArrearsService(service.repository).get_tenants_in_arrears()

        assert arrears[0].tenant.id == tenant.id
        assert arrears[0].arrears == Decimal("78500")


class TestConsistency:
    """Test balance verification and forced repair."""

    def test_consistent_after_payments(self, service, tenant):
        service.batch_process_payments(
            tenant.id,
            [PaymentEntry(Decimal("70000"), date(2024, 3, 1), PaymentType.RENT)],
            as_of=date(2024, 3, 10),
        )

        ledger = service.check_consistency(tenant.id, as_of=date(2024, 3, 10))

        assert ledger.final_due_balance == Decimal("10000")

    def test_drift_detected_and_repaired(self, service, tenant, db_session, caplog):
        """Test that a corrupted balance is reported, then overwritten from the ledger."""
        tenant.due_balance = Decimal("999")
        db_session.commit()

        with pytest.raises(InconsistentStateError):
            service.check_consistency(tenant.id, as_of=date(2024, 3, 10))

        with caplog.at_level(logging.WARNING):
            state = service.force_recalculate_balance(tenant.id, "admin", as_of=date(2024, 3, 10))

        assert state.due_balance == Decimal("80000")
        assert state.last_billed_period == "2024-03"
        assert "AUDIT" in caplog.text
        assert "admin" in caplog.text

        service.check_consistency(tenant.id, as_of=date(2024, 3, 10))

    def test_repair_inside_handover_waiver_keeps_months_unbilled(self, service, estate, db_session):
        """Test a repair dated before the first billable month does not rewind the cursor."""
        estate.units.append(
            Unit(
                name="E2",
                service_charge=Decimal("3000"),
                handover_status=HandoverStatus.HANDED_OVER,
                handover_date=date(2024, 3, 20),
            )
        )
        db_session.commit()
        homeowner = service.open_account(
            name="Sam Owner",
            property_id=estate.id,
            unit_name="E2",
            resident_type=ResidentType.HOMEOWNER,
            lease_start=date(2024, 3, 20),
            as_of=date(2024, 3, 20),
        )
        assert homeowner.lease.last_billed_period == "2024-04"

        state = service.force_recalculate_balance(homeowner.id, "admin", as_of=date(2024, 3, 25))
        result = service.reconcile_account(homeowner.id, as_of=date(2024, 4, 15))
        ledger = service.get_ledger(homeowner.id, as_of=date(2024, 4, 15))

        assert state.last_billed_period == "2024-04"
        assert result.months_billed == 0
        assert result.state.due_balance == Decimal("0")
        assert ledger.final_due_balance == Decimal("0")

    def test_ledger_groups_owner_units(self, service, estate):
        homeowner = service.open_account(
            name="Jane Owner",
            property_id=estate.id,
            unit_name="E1",
            resident_type=ResidentType.HOMEOWNER,
            lease_start=date(2024, 1, 5),
            as_of=date(2024, 1, 5),
        )

        ledger = service.get_ledger(homeowner.id, as_of=date(2024, 3, 31), group_owner_units=True)

        assert [e.description for e in ledger.entries] == [
            "S.Charge for Units: E1",
            "S.Charge for Units: E1",
        ]
        assert ledger.final_due_balance == Decimal("6000")


class TestReconcileAndArchive:
    """Test bulk reconciliation and move-out."""

    def test_reconcile_account_is_idempotent(self, service, tenant):
        first = service.reconcile_account(tenant.id, as_of=date(2024, 3, 2))
        second = service.reconcile_account(tenant.id, as_of=date(2024, 3, 20))

        assert first.months_billed == 2
        assert second.months_billed == 0
        assert second.state.due_balance == Decimal("80000")

    def test_reconcile_all_continues_past_failures(self, service, tenant, estate, db_session):
        """Test that one broken account is reported without stopping the rest."""
        broken = Tenant(
            name="Ghost Owner",
            resident_type=ResidentType.HOMEOWNER,
            status=TenantStatus.ACTIVE,
            property_id=estate.id,
            unit_name="Z9",
        )
        db_session.add(broken)
        db_session.commit()

        result = service.reconcile_all(as_of=date(2024, 2, 2))

        assert result.reconciled == 1
        assert list(result.failures) == [broken.id]
        db_session.refresh(tenant)
        assert tenant.due_balance == Decimal("60000")

    def test_archive_account(self, service, tenant, db_session):
        archived = service.archive_account(tenant.id)

        assert archived.status == TenantStatus.ARCHIVED
        unit = db_session.query(Unit).filter_by(name="A1").one()
        assert unit.status == UnitStatus.VACANT
        assert service.repository.fetch_tenants() == []
