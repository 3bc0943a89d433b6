"""Monthly billing reconciliation and account onboarding terms."""

import logging
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from rentledger.models import ResidentType, Tenant, Unit
from rentledger.services.account_state import AccountState
from rentledger.services.billing_utils import (
    ZERO,
    add_months,
    first_billable_month,
    iter_months,
    month_key,
    parse_month,
    start_of_month,
    to_decimal,
)
from rentledger.services.errors import ValidationError
from rentledger.services.payment_service import recommended_payment_status

logger = logging.getLogger(__name__)


class ReconciliationResult(NamedTuple):
    """Outcome of bringing an account's billing up to date."""

    state: AccountState
    months_billed: int
    accrued: Decimal


def monthly_charge(tenant: Tenant, unit: Unit | None) -> Decimal:
    """Recurring monthly charge: lease rent for tenants, unit service charge for homeowners.

    Raises:
        ValueError: If the resident type is unknown
    """
    lease = tenant.lease
    if tenant.resident_type == ResidentType.TENANT:
        return to_decimal(lease.rent if lease is not None else None)
    elif tenant.resident_type == ResidentType.HOMEOWNER:
        if unit is not None:
            return to_decimal(unit.service_charge)
        return to_decimal(lease.service_charge if lease is not None else None)
    else:
        raise ValueError(f"Unknown resident type: {tenant.resident_type}")


def billing_anchor(tenant: Tenant, unit: Unit | None) -> date | None:
    """First month the account is billed for, or None when it cannot be determined.

    Tenants are anchored at the lease start month. Homeowners are anchored at
    the first billable month after handover, falling back to the lease start
    month when the unit or its handover date is unknown.
    """
    lease = tenant.lease
    lease_start = lease.start_date if lease is not None else None

    if tenant.resident_type == ResidentType.TENANT:
        return start_of_month(lease_start) if lease_start else None
    elif tenant.resident_type == ResidentType.HOMEOWNER:
        if unit is not None and unit.handover_date is not None:
            return first_billable_month(unit.handover_date)
        return start_of_month(lease_start) if lease_start else None
    else:
        raise ValueError(f"Unknown resident type: {tenant.resident_type}")


def reconcile_monthly_billing(
    tenant: Tenant,
    unit: Unit | None = None,
    as_of: date | None = None,
    state: AccountState | None = None,
) -> ReconciliationResult:
    """
    Bill every unbilled month up to and including the month of as_of.

    Starts at the month after last_billed_period (or at the billing anchor
    when the account was never billed), adds one monthly charge per month,
    then offsets the accrued total with any account credit. Calling it again
    within the same month bills nothing.

    Args:
        tenant: Account to reconcile
        unit: Unit the account occupies (None when it cannot be resolved)
        as_of: Reconciliation date (default: today)
        state: Snapshot to start from (default: read from tenant)

    Returns:
        ReconciliationResult with the new snapshot, months billed and amount accrued
    """
    as_of = as_of or date.today()
    state = state or AccountState.from_tenant(tenant)

    anchor = billing_anchor(tenant, unit) if tenant.lease is not None else None
    if anchor is None:
        logger.warning(
            f"Skipping billing for tenant {tenant.name} ({tenant.id}): "
            f"missing lease or billing start date"
        )
        return ReconciliationResult(
            state._replace(payment_status=recommended_payment_status(state.due_balance, as_of)),
            0,
            ZERO,
        )

    if state.last_billed_period:
        next_month = add_months(parse_month(state.last_billed_period), 1)
    else:
        next_month = anchor

    charge = monthly_charge(tenant, unit)
    months = list(iter_months(next_month, as_of))

    if not months or charge <= 0:
        return ReconciliationResult(
            state._replace(payment_status=recommended_payment_status(state.due_balance, as_of)),
            0,
            ZERO,
        )

    accrued = charge * len(months)
    due = state.due_balance + accrued
    credit = state.account_balance
    if credit > 0:
        applied = min(credit, due)
        due -= applied
        credit -= applied

    logger.info(
        f"Billed {len(months)} month(s) for tenant {tenant.id}: "
        f"{month_key(months[0])}..{month_key(months[-1])}, accrued {accrued}"
    )
    new_state = state._replace(
        due_balance=due,
        account_balance=credit,
        payment_status=recommended_payment_status(due, as_of),
        last_billed_period=month_key(months[-1]),
    )
    return ReconciliationResult(new_state, len(months), accrued)


def initial_account_terms(
    resident_type: ResidentType,
    rent,
    security_deposit,
    water_deposit,
    lease_start: date,
    unit: Unit | None = None,
) -> tuple[Decimal, str]:
    """
    Opening due balance and billing cursor for a new account.

    Tenants owe their first month plus deposits and are marked billed for the
    lease start month. Homeowners owe deposits only and are positioned just
    before their first billable month.

    Args:
        resident_type: Tenant or Homeowner
        rent: Monthly rent (tenants)
        security_deposit: Security deposit amount
        water_deposit: Water deposit amount
        lease_start: Lease start date
        unit: Unit being occupied (used for the homeowner handover rule)

    Returns:
        Tuple of (initial_due, last_billed_period)

    Raises:
        ValidationError: If a tenant's rent is not positive
        ValueError: If resident_type is unknown
    """
    deposits = to_decimal(security_deposit) + to_decimal(water_deposit)

    if resident_type == ResidentType.TENANT:
        rent_value = to_decimal(rent)
        if rent_value <= 0:
            raise ValidationError("Monthly Rent must be a positive value for tenants.")
        return rent_value + deposits, month_key(lease_start)
    elif resident_type == ResidentType.HOMEOWNER:
        if unit is not None and unit.handover_date is not None:
            first_month = first_billable_month(unit.handover_date)
        else:
            first_month = start_of_month(lease_start)
        return deposits, month_key(add_months(first_month, -1))
    else:
        raise ValueError(f"Unknown resident type: {resident_type}")


__all__ = [
    "ReconciliationResult",
    "billing_anchor",
    "initial_account_terms",
    "monthly_charge",
    "reconcile_monthly_billing",
]
