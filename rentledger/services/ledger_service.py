"""Ledger reconstruction from an account's full charge and payment history.

The ledger is rebuilt from scratch (lease terms, unit handover dates, paid
payments and water readings) and never read from stored balances, so it can
be used to audit or repair the incrementally maintained due/credit figures.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple, Sequence

from rentledger.models import (
    Payment,
    PaymentStatus,
    PaymentType,
    Property,
    PropertyOwner,
    ResidentType,
    Tenant,
    Unit,
    WaterMeterReading,
)
from rentledger.services.account_state import AccountState
from rentledger.services.billing_service import billing_anchor, monthly_charge
from rentledger.services.billing_utils import (
    ZERO,
    first_billable_month,
    format_month,
    iter_months,
    month_key,
    parse_month,
    start_of_month,
    to_decimal,
)
from rentledger.services.errors import InconsistentStateError

logger = logging.getLogger(__name__)


class LedgerEntry(NamedTuple):
    """One line of a reconstructed ledger."""

    date: date
    description: str
    charge: Decimal
    payment: Decimal
    balance: Decimal
    for_month: str
    """Billing month as "YYYY-MM"."""

    kind: str

    @property
    def month_label(self) -> str:
        """for_month for display, e.g. "Jan 2024"."""
        return format_month(parse_month(self.for_month))


class LedgerOptions(NamedTuple):
    include_rent: bool = True
    include_service_charge: bool = True
    include_water: bool = True


class LedgerResult(NamedTuple):
    entries: list[LedgerEntry]
    final_due_balance: Decimal
    final_account_balance: Decimal


# Sort rank: charges are listed before payments on the same day
_CHARGE_KINDS = ("charge", "deposit", "adjustment", "water")


def unit_index(properties: Iterable[Property]) -> dict[tuple[int, str], Unit]:
    """Map (property_id, unit_name) to Unit across all properties."""
    index = {}
    for prop in properties:
        for unit in prop.units:
            index[(prop.id, unit.name)] = unit
    return index


def _owner_units(owner: PropertyOwner, properties: Iterable[Property]) -> list[Unit]:
    units = []
    for prop in properties:
        for unit in prop.units:
            if owner.owns(prop.id, unit):
                units.append(unit)
    return units


def _tenant_charge_lines(tenant: Tenant, unit: Unit | None, as_of: date) -> list[dict]:
    anchor = billing_anchor(tenant, unit)
    charge = monthly_charge(tenant, unit)
    if anchor is None or charge <= 0:
        return []

    label = "Rent" if tenant.resident_type == ResidentType.TENANT else "S.Charge"
    return [
        {
            "date": month,
            "description": f"{label} for Units: {tenant.unit_name}",
            "charge": charge,
            "payment": ZERO,
            "for_month": month_key(month),
            "kind": "charge",
        }
        for month in iter_months(anchor, as_of)
    ]


def _owner_charge_lines(
    tenant: Tenant, units: Sequence[Unit], as_of: date
) -> list[dict]:
    """One line per month grouping every owner unit billable in that month."""
    lease_start = tenant.lease.start_date if tenant.lease is not None else None
    by_month: dict[date, list[Unit]] = {}
    for unit in units:
        if to_decimal(unit.service_charge) <= 0:
            continue
        if unit.handover_date is not None:
            anchor = first_billable_month(unit.handover_date)
        elif lease_start is not None:
            anchor = start_of_month(lease_start)
        else:
            continue
        for month in iter_months(anchor, as_of):
            by_month.setdefault(month, []).append(unit)

    lines = []
    for month in sorted(by_month):
        month_units = sorted(by_month[month], key=lambda u: u.name)
        lines.append(
            {
                "date": month,
                "description": "S.Charge for Units: " + ", ".join(u.name for u in month_units),
                "charge": sum((to_decimal(u.service_charge) for u in month_units), ZERO),
                "payment": ZERO,
                "for_month": month_key(month),
                "kind": "charge",
            }
        )
    return lines


def _deposit_lines(tenant: Tenant) -> list[dict]:
    lease_start = tenant.lease.start_date if tenant.lease is not None else None
    if lease_start is None:
        return []
    lines = []
    for description, amount in (
        ("Security Deposit", tenant.security_deposit),
        ("Water Deposit", tenant.water_deposit),
    ):
        value = to_decimal(amount)
        if value > 0:
            lines.append(
                {
                    "date": lease_start,
                    "description": description,
                    "charge": value,
                    "payment": ZERO,
                    "for_month": month_key(lease_start),
                    "kind": "deposit",
                }
            )
    return lines


def _payment_line(payment: Payment) -> dict:
    amount = to_decimal(payment.amount)
    for_month = (
        month_key(parse_month(payment.rent_for_month))
        if payment.rent_for_month
        else month_key(payment.payment_date)
    )

    if payment.type == PaymentType.ADJUSTMENT:
        if amount >= 0:
            charge, paid = amount, ZERO
        else:
            charge, paid = ZERO, -amount
        description = "Balance Adjustment"
        kind = "adjustment" if amount >= 0 else "payment"
    elif payment.type in (
        PaymentType.RENT,
        PaymentType.DEPOSIT,
        PaymentType.SERVICE_CHARGE,
        PaymentType.OTHER,
        PaymentType.WATER,
    ):
        charge, paid = ZERO, amount
        description = "Payment Received"
        if payment.type != PaymentType.RENT:
            description = f"Payment Received ({payment.type.value})"
        kind = "payment"
    else:
        raise ValueError(f"Unknown payment type: {payment.type}")

    if payment.notes:
        description = f"{description} - {payment.notes}"

    return {
        "date": payment.payment_date,
        "description": description,
        "charge": charge,
        "payment": paid,
        "for_month": for_month,
        "kind": kind,
    }


def _water_line(reading: WaterMeterReading) -> dict:
    return {
        "date": reading.reading_date,
        "description": f"Water Bill ({to_decimal(reading.consumption)} units)",
        "charge": to_decimal(reading.amount),
        "payment": ZERO,
        "for_month": month_key(reading.reading_date),
        "kind": "water",
    }


def generate_ledger(
    tenant: Tenant,
    payments: Iterable[Payment],
    properties: Iterable[Property],
    water_readings: Iterable[WaterMeterReading] = (),
    owner: PropertyOwner | None = None,
    as_of: date | None = None,
    options: LedgerOptions = LedgerOptions(),
) -> LedgerResult:
    """
    Rebuild an account's ledger from its history.

    Args:
        tenant: Account to rebuild
        payments: All payments recorded for the account
        properties: Properties (with units) used to resolve units and handover dates
        water_readings: Water readings billed to the account
        owner: Homeowner whose units are grouped into one service charge line per month
        as_of: Last month to bill (default: today)
        options: Which charge families to include

    Returns:
        LedgerResult with ordered, balance-annotated entries and final balances
    """
    as_of = as_of or date.today()
    properties = list(properties)
    units = unit_index(properties)
    unit = units.get((tenant.property_id, tenant.unit_name))

    lines: list[dict] = []

    if tenant.resident_type == ResidentType.TENANT:
        if options.include_rent:
            lines.extend(_tenant_charge_lines(tenant, unit, as_of))
    elif tenant.resident_type == ResidentType.HOMEOWNER:
        if options.include_service_charge:
            if owner is not None:
                lines.extend(_owner_charge_lines(tenant, _owner_units(owner, properties), as_of))
            else:
                lines.extend(_tenant_charge_lines(tenant, unit, as_of))
    else:
        raise ValueError(f"Unknown resident type: {tenant.resident_type}")

    if options.include_rent:
        lines.extend(_deposit_lines(tenant))

    include_account_payments = options.include_rent or options.include_service_charge
    for payment in payments:
        if payment.status != PaymentStatus.PAID:
            continue
        if payment.type == PaymentType.WATER:
            if options.include_water:
                lines.append(_payment_line(payment))
        elif include_account_payments:
            lines.append(_payment_line(payment))

    if options.include_water:
        lines.extend(_water_line(reading) for reading in water_readings)

    # Stable sort: by date, then charges ahead of payments
    lines.sort(key=lambda line: (line["date"], 0 if line["kind"] in _CHARGE_KINDS else 1))

    entries = []
    balance = ZERO
    for line in lines:
        balance = balance + line["charge"] - line["payment"]
        entries.append(LedgerEntry(balance=balance, **line))

    logger.debug(f"Rebuilt ledger for tenant {tenant.id}: {len(entries)} entries, balance {balance}")
    return LedgerResult(
        entries=entries,
        final_due_balance=max(ZERO, balance),
        final_account_balance=max(ZERO, -balance),
    )


def verify_account_balance(
    state: AccountState, ledger: LedgerResult, tolerance=Decimal("1")
) -> None:
    """
    Compare stored balances with a reconstructed ledger.

    Raises:
        InconsistentStateError: If either balance differs by more than tolerance
    """
    tolerance = to_decimal(tolerance)
    due_drift = abs(state.due_balance - ledger.final_due_balance)
    credit_drift = abs(state.account_balance - ledger.final_account_balance)
    if due_drift > tolerance or credit_drift > tolerance:
        raise InconsistentStateError(
            f"Stored balances (due {state.due_balance}, credit {state.account_balance}) "
            f"disagree with ledger (due {ledger.final_due_balance}, "
            f"credit {ledger.final_account_balance})"
        )


__all__ = [
    "LedgerEntry",
    "LedgerOptions",
    "LedgerResult",
    "generate_ledger",
    "unit_index",
    "verify_account_balance",
]
