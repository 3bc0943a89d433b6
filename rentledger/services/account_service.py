"""Account operations that read, bill and persist resident accounts.

Every mutating operation runs as one transaction on the session: the
account row is locked, all changes are computed from an AccountState
snapshot, and the result is committed together or rolled back together.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rentledger.models import (
    Landlord,
    Lease,
    Payment,
    PaymentEdit,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    PropertyOwner,
    ResidentType,
    Tenant,
    TenantStatus,
    Unit,
    UnitStatus,
    WaterBillStatus,
    WaterMeterReading,
)
from rentledger.services.account_state import AccountState, account_updates
from rentledger.services.billing_service import (
    ReconciliationResult,
    billing_anchor,
    initial_account_terms,
    reconcile_monthly_billing,
)
from rentledger.services.billing_utils import ZERO, add_months, month_key, parse_month, to_decimal
from rentledger.services.config import AppConfig
from rentledger.services.errors import (
    BillingError,
    InconsistentStateError,
    NotFoundError,
    ValidationError,
)
from rentledger.services.ledger_service import (
    LedgerOptions,
    LedgerResult,
    generate_ledger,
    verify_account_balance,
)
from rentledger.services.payment_service import apply_payments, recommended_payment_status
from rentledger.services.repository import SqlAlchemyAccountRepository
from rentledger.services.validation import validate_payment
from rentledger.services.water_service import calculate_water_bill

logger = logging.getLogger(__name__)

# Water is billed separately and never affects stored balances
BALANCE_LEDGER_OPTIONS = LedgerOptions(include_water=False)


class PaymentEntry(NamedTuple):
    """One payment to record in a batch."""

    amount: Decimal
    payment_date: date
    payment_type: PaymentType
    rent_for_month: str | None = None
    notes: str | None = None
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = None
    water_reading_id: int | None = None


class BatchResult(NamedTuple):
    payments: list[Payment]
    state: AccountState
    updates: dict
    months_billed: int


class ReconcileAllResult(NamedTuple):
    reconciled: int
    failures: dict[int, str]


class AccountService:
    """Service for resident account billing and payment processing."""

    def __init__(self, session: Session, config: AppConfig | None = None):
        self.session = session
        self.config = config or AppConfig()
        self.repository = SqlAlchemyAccountRepository(session)

    def _rollback(self, error: Exception, action: str) -> None:
        self.session.rollback()
        if isinstance(error, ValidationError):
            logger.warning(f"{action} rejected: {error}")
        else:
            logger.error(f"{action} failed: {error}", exc_info=not isinstance(error, BillingError))

    def _resolve_unit(self, tenant: Tenant) -> Unit | None:
        unit = self.repository.fetch_unit(tenant.property_id, tenant.unit_name)
        if unit is None:
            if tenant.resident_type == ResidentType.HOMEOWNER:
                raise NotFoundError(
                    f"Unit {tenant.unit_name} not found for homeowner account {tenant.id}"
                )
            logger.warning(
                f"Unit {tenant.unit_name} not found for tenant {tenant.id}; billing from lease terms"
            )
        return unit

    def batch_process_payments(
        self,
        tenant_id: int,
        entries: Sequence[PaymentEntry],
        as_of: date | None = None,
    ) -> BatchResult:
        """
        Record a batch of payments against one account atomically.

        The account is locked and brought up to date with reconciliation,
        every entry is validated before anything is written, then the
        payments are folded over the account state and persisted together.

        Args:
            tenant_id: Account receiving the payments
            entries: Payments to record
            as_of: Processing date (default: today)

        Returns:
            BatchResult with created payments, final state and applied field updates

        Raises:
            ValidationError: If any entry is invalid (nothing is written)
            NotFoundError: If the account, unit or a referenced water reading is missing
        """
        as_of = as_of or date.today()
        action = f"Payment batch for tenant {tenant_id}"
        try:
            if not entries:
                raise ValidationError("No payment entries to record.")

            tenant = self.repository.lock_account(tenant_id)
            unit = self._resolve_unit(tenant)

            before = AccountState.from_tenant(tenant)
            reconciled = reconcile_monthly_billing(tenant, unit, as_of, before)

            readings: dict[int, WaterMeterReading] = {}
            for entry in entries:
                validate_payment(entry.amount, entry.payment_date, tenant, entry.payment_type, as_of)
                if entry.payment_type == PaymentType.WATER and entry.water_reading_id is not None:
                    reading = self.repository.fetch_water_reading(entry.water_reading_id)
                    if reading is None or reading.tenant_id != tenant.id:
                        raise NotFoundError(
                            f"Water reading {entry.water_reading_id} not found for tenant {tenant.id}"
                        )
                    readings[entry.water_reading_id] = reading

            after = apply_payments(
                reconciled.state,
                [(e.amount, e.payment_type, e.payment_date) for e in entries],
            )

            payments = []
            for entry in entries:
                payment = Payment(
                    tenant_id=tenant.id,
                    amount=to_decimal(entry.amount),
                    payment_date=entry.payment_date,
                    type=entry.payment_type,
                    status=PaymentStatus.PAID,
                    rent_for_month=entry.rent_for_month or month_key(entry.payment_date),
                    notes=entry.notes,
                    payment_method=entry.payment_method,
                    transaction_id=entry.transaction_id,
                    water_reading_id=entry.water_reading_id,
                )
                self.session.add(payment)
                payments.append(payment)
            self.session.flush()

            for payment in payments:
                if payment.water_reading_id is not None:
                    reading = readings[payment.water_reading_id]
                    reading.status = WaterBillStatus.PAID
                    reading.payment_id = payment.id

            after.apply_to(tenant)
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, action)
            raise

        updates = account_updates(before, after)
        logger.info(
            f"Recorded {len(payments)} payment(s) for tenant {tenant_id}: "
            f"due {after.due_balance}, credit {after.account_balance}, status {after.payment_status.value}"
        )
        return BatchResult(payments, after, updates, reconciled.months_billed)

    def reconcile_account(self, tenant_id: int, as_of: date | None = None) -> ReconciliationResult:
        """Bill any unbilled months for one account and persist the result."""
        as_of = as_of or date.today()
        try:
            tenant = self.repository.lock_account(tenant_id)
            unit = self._resolve_unit(tenant)
            result = reconcile_monthly_billing(tenant, unit, as_of)
            result.state.apply_to(tenant)
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, f"Reconciliation for tenant {tenant_id}")
            raise
        return result

    def reconcile_all(self, as_of: date | None = None) -> ReconcileAllResult:
        """Reconcile every active account; a failing account does not stop the rest."""
        as_of = as_of or date.today()
        tenant_ids = [t.id for t in self.repository.fetch_tenants()]
        reconciled = 0
        failures: dict[int, str] = {}
        for tenant_id in tenant_ids:
            try:
                self.reconcile_account(tenant_id, as_of)
                reconciled += 1
            except BillingError as e:
                failures[tenant_id] = str(e)

        logger.info(f"Reconciled {reconciled} account(s), {len(failures)} failure(s)")
        return ReconcileAllResult(reconciled, failures)

    def get_ledger(
        self,
        tenant_id: int,
        as_of: date | None = None,
        options: LedgerOptions = LedgerOptions(),
        group_owner_units: bool = False,
    ) -> LedgerResult:
        """Rebuild an account's ledger from stored history.

        With group_owner_units, a homeowner's service charge covers every unit
        assigned to the same owner.
        """
        tenant = self.repository.fetch_account(tenant_id)
        owner = None
        if group_owner_units and tenant.resident_type == ResidentType.HOMEOWNER:
            owner = self.repository.fetch_owner_for_unit(tenant.property_id, tenant.unit_name)
        return generate_ledger(
            tenant,
            self.repository.fetch_payment_history(tenant_id),
            self.repository.fetch_properties(),
            self.repository.fetch_water_readings(tenant_id),
            owner=owner,
            as_of=as_of,
            options=options,
        )

    def check_consistency(self, tenant_id: int, as_of: date | None = None) -> LedgerResult:
        """
        Compare the account's balances, brought up to date, with its rebuilt ledger.

        Nothing is written.

        Raises:
            InconsistentStateError: If the balances drift beyond the configured tolerance
        """
        as_of = as_of or date.today()
        tenant = self.repository.fetch_account(tenant_id)
        unit = self._resolve_unit(tenant)
        state = reconcile_monthly_billing(tenant, unit, as_of).state
        ledger = self.get_ledger(tenant_id, as_of, BALANCE_LEDGER_OPTIONS)
        try:
            verify_account_balance(state, ledger, self.config.balance_tolerance)
        except InconsistentStateError as e:
            logger.error(f"Tenant {tenant_id} balance drift: {e}")
            raise
        return ledger

    def force_recalculate_balance(
        self,
        tenant_id: int,
        operator: str,
        as_of: date | None = None,
    ) -> AccountState:
        """
        Overwrite stored balances with the values from the rebuilt ledger.

        The billing cursor is moved to the as-of month so the next
        reconciliation does not bill those months again. It never moves
        before the month preceding the first billable month, so waived
        handover months stay unbilled.

        Args:
            tenant_id: Account to repair
            operator: Who requested the repair (written to the audit line)
            as_of: Ledger cut-off date (default: today)

        Returns:
            The new AccountState
        """
        as_of = as_of or date.today()
        try:
            tenant = self.repository.lock_account(tenant_id)
            unit = self._resolve_unit(tenant)
            payments = self.repository.fetch_payment_history(tenant_id)
            ledger = generate_ledger(
                tenant,
                payments,
                self.repository.fetch_properties(),
                as_of=as_of,
                options=BALANCE_LEDGER_OPTIONS,
            )

            before = AccountState.from_tenant(tenant)
            paid_dates = [
                p.payment_date
                for p in payments
                if p.status == PaymentStatus.PAID and p.type != PaymentType.ADJUSTMENT
            ]
            after = before._replace(
                due_balance=ledger.final_due_balance,
                account_balance=ledger.final_account_balance,
                payment_status=recommended_payment_status(ledger.final_due_balance, as_of),
                last_payment_date=max(paid_dates) if paid_dates else before.last_payment_date,
            )
            anchor = billing_anchor(tenant, unit) if tenant.lease is not None else None
            if anchor is not None:
                # Never rewind into the months before the anchor
                after = after._replace(
                    last_billed_period=max(month_key(as_of), month_key(add_months(anchor, -1)))
                )

            after.apply_to(tenant)
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, f"Forced recalculation for tenant {tenant_id}")
            raise

        logger.warning(
            f"AUDIT: balance for tenant {tenant_id} force-recalculated by {operator}: "
            f"due {before.due_balance} -> {after.due_balance}, "
            f"credit {before.account_balance} -> {after.account_balance}"
        )
        return after

    def update_payment(
        self,
        payment_id: int,
        reason: str,
        editor: str,
        amount=None,
        payment_date: date | None = None,
        notes: str | None = None,
        rent_for_month: str | None = None,
        as_of: date | None = None,
    ) -> Payment:
        """
        Correct a recorded payment and keep its previous values as edit history.

        Stored balances are not touched; run force_recalculate_balance
        afterwards to bring them in line with the corrected history.

        Args:
            payment_id: Payment to correct
            reason: Why the payment is being changed
            editor: Who made the change
            amount: New amount (unchanged when None)
            payment_date: New receipt date (unchanged when None)
            notes: New notes (unchanged when None)
            rent_for_month: New "YYYY-MM" billing month (unchanged when None)
            as_of: Reference date for the future-date check (default: today)

        Raises:
            NotFoundError: If the payment does not exist
            ValidationError: If the reason is empty or the corrected values are invalid
        """
        as_of = as_of or date.today()
        try:
            if not reason or not reason.strip():
                raise ValidationError("A reason is required to edit a payment.")

            payment = self.repository.lock_payment(payment_id)
            tenant = self.repository.fetch_account(payment.tenant_id)
            new_amount = payment.amount if amount is None else amount
            new_date = payment.payment_date if payment_date is None else payment_date
            validate_payment(new_amount, new_date, tenant, payment.type, as_of)
            if rent_for_month is not None:
                try:
                    rent_for_month = month_key(parse_month(rent_for_month))
                except ValueError as e:
                    raise ValidationError(f"Invalid billing month: {rent_for_month}") from e

            payment.edits.append(
                PaymentEdit(
                    editor=editor,
                    reason=reason.strip(),
                    previous_amount=payment.amount,
                    previous_payment_date=payment.payment_date,
                    previous_notes=payment.notes,
                )
            )
            previous_amount = payment.amount
            payment.amount = to_decimal(new_amount)
            payment.payment_date = new_date
            if notes is not None:
                payment.notes = notes
            if rent_for_month is not None:
                payment.rent_for_month = rent_for_month
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, f"Editing payment {payment_id}")
            raise

        logger.info(
            f"Payment {payment_id} edited by {editor}: amount {previous_amount} -> {payment.amount}. "
            f"Reason: {reason.strip()}"
        )
        return payment

    def _new_account(
        self,
        name: str,
        property_id: int,
        unit: Unit,
        resident_type: ResidentType,
        lease_start: date,
        rent=ZERO,
        security_deposit=ZERO,
        water_deposit=ZERO,
        lease_end: date | None = None,
        email: str | None = None,
        phone: str | None = None,
        as_of: date | None = None,
    ) -> Tenant:
        initial_due, last_billed_period = initial_account_terms(
            resident_type, rent, security_deposit, water_deposit, lease_start, unit
        )
        tenant = Tenant(
            name=name,
            email=email,
            phone=phone,
            resident_type=resident_type,
            status=TenantStatus.ACTIVE,
            property_id=property_id,
            unit_name=unit.name,
            security_deposit=to_decimal(security_deposit),
            water_deposit=to_decimal(water_deposit),
            due_balance=initial_due,
            account_balance=ZERO,
        )
        tenant.lease = Lease(
            start_date=lease_start,
            end_date=lease_end,
            rent=to_decimal(rent),
            service_charge=unit.service_charge,
            payment_status=recommended_payment_status(initial_due, as_of or date.today()),
            last_billed_period=last_billed_period,
        )
        self.session.add(tenant)
        if resident_type == ResidentType.TENANT:
            unit.status = UnitStatus.RENTED
        return tenant

    def open_account(
        self,
        name: str,
        property_id: int,
        unit_name: str,
        resident_type: ResidentType,
        lease_start: date,
        rent=ZERO,
        security_deposit=ZERO,
        water_deposit=ZERO,
        lease_end: date | None = None,
        email: str | None = None,
        phone: str | None = None,
        as_of: date | None = None,
    ) -> Tenant:
        """
        Create a resident account with its opening balance and lease.

        Tenants start owing their first month plus deposits; homeowners
        start owing deposits and are billed from their first billable month.

        Raises:
            NotFoundError: If the property or unit does not exist
            ValidationError: If a tenant's rent is not positive
        """
        try:
            if self.repository.fetch_property(property_id) is None:
                raise NotFoundError("Cannot add tenant: selected property not found.")
            unit = self.repository.fetch_unit(property_id, unit_name)
            if unit is None:
                raise NotFoundError("Cannot add tenant: selected unit not found in property.")

            tenant = self._new_account(
                name,
                property_id,
                unit,
                resident_type,
                lease_start,
                rent,
                security_deposit,
                water_deposit,
                lease_end,
                email,
                phone,
                as_of,
            )
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, f"Opening account for unit {unit_name}")
            raise

        logger.info(
            f"Opened {resident_type.value} account {tenant.id} for unit {unit_name}: "
            f"due {tenant.due_balance}, billed through {tenant.lease.last_billed_period}"
        )
        return tenant

    def archive_account(self, tenant_id: int) -> Tenant:
        """Archive an account on move-out and mark its unit vacant."""
        try:
            tenant = self.repository.lock_account(tenant_id)
            tenant.status = TenantStatus.ARCHIVED
            unit = self.repository.fetch_unit(tenant.property_id, tenant.unit_name)
            if unit is not None:
                unit.status = UnitStatus.VACANT
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, f"Archiving tenant {tenant_id}")
            raise

        logger.info(f"Archived tenant {tenant_id} ({tenant.unit_name})")
        return tenant

    def _resident_for_unit(self, property_id: int, unit: Unit, as_of: date) -> Tenant:
        """Active resident of the unit, creating a homeowner account for its owner if needed."""
        resident = self.repository.fetch_resident(property_id, unit.name)
        if resident is not None:
            return resident

        owner: PropertyOwner | Landlord | None = self.repository.fetch_owner_for_unit(
            property_id, unit.name
        )
        if owner is None and unit.landlord_id is not None:
            owner = self.session.get(Landlord, unit.landlord_id)
        if owner is None:
            raise NotFoundError(
                f"Could not find or create a resident record for unit {unit.name} to bill."
            )

        logger.info(f"Creating homeowner account for {owner.name} on unit {unit.name}")
        lease_start = unit.handover_date or as_of
        resident = self._new_account(
            owner.name,
            property_id,
            unit,
            ResidentType.HOMEOWNER,
            lease_start,
            email=owner.email,
            phone=owner.phone,
            as_of=as_of,
        )
        self.session.flush()
        return resident

    def record_water_reading(
        self,
        property_id: int,
        unit_name: str,
        prior_reading,
        current_reading,
        reading_date: date,
        as_of: date | None = None,
    ) -> WaterMeterReading:
        """
        Record a meter reading and bill it to the unit's resident.

        The water bill stays on the reading; the resident's rent or service
        charge balance is reconciled but the water amount is not added to it.

        Raises:
            NotFoundError: If the property, unit or a billable resident cannot be found
            ValidationError: If the readings are invalid
        """
        as_of = as_of or date.today()
        try:
            if self.repository.fetch_property(property_id) is None:
                raise NotFoundError("Property not found.")
            unit = self.repository.fetch_unit(property_id, unit_name)
            if unit is None:
                raise NotFoundError("Unit not found in property.")

            bill = calculate_water_bill(prior_reading, current_reading)
            resident = self._resident_for_unit(property_id, unit, as_of)

            reading = WaterMeterReading(
                tenant_id=resident.id,
                property_id=property_id,
                unit_name=unit_name,
                prior_reading=to_decimal(prior_reading),
                current_reading=to_decimal(current_reading),
                consumption=bill.consumption,
                rate=bill.rate,
                amount=bill.amount,
                reading_date=reading_date,
                status=WaterBillStatus.PENDING,
            )
            self.session.add(reading)

            result = reconcile_monthly_billing(resident, unit, as_of)
            result.state.apply_to(resident)
            self.session.commit()
        except (BillingError, SQLAlchemyError) as e:
            self._rollback(e, f"Water reading for unit {unit_name}")
            raise

        logger.info(
            f"Water reading for unit {unit_name}: {bill.consumption} units, amount {bill.amount}"
        )
        return reading


__all__ = [
    "AccountService",
    "BatchResult",
    "PaymentEntry",
    "ReconcileAllResult",
]
