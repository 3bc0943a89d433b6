"""Landlord payout calculations for units let on the owner's behalf.

Each rent payment is split into the management fee, the service charge
withheld for the estate, and the net amount remitted to the landlord.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple

from rentledger.models import (
    HandoverStatus,
    Landlord,
    ManagementStatus,
    Payment,
    PaymentStatus,
    PaymentType,
    Property,
    Tenant,
    Unit,
    UnitStatus,
)
from rentledger.services.billing_utils import (
    ZERO,
    add_months,
    format_month,
    month_key,
    months_between,
    parse_month,
    round_money,
    start_of_month,
    to_decimal,
)

logger = logging.getLogger(__name__)

MANAGEMENT_FEE_RATE = Decimal("0.05")
INITIAL_LETTING_FEE_RATE = Decimal("0.5")
# Lease must start within this many months of handover to count as initial letting
INITIAL_LETTING_WINDOW_MONTHS = 3

LUMP_SUM_DEPOSIT_FACTOR = Decimal("1.5")
LUMP_SUM_UNROLL_FACTOR = Decimal("1.1")


class TransactionBreakdown(NamedTuple):
    """Split of a single rent payment."""

    gross: Decimal
    service_charge_deduction: Decimal
    management_fee: Decimal
    net_to_landlord: Decimal


class LandlordTransaction(NamedTuple):
    """One line on a landlord statement."""

    payment_id: int | None
    date: date
    unit_name: str
    unit_type: str
    for_month: str
    breakdown: TransactionBreakdown


class FinancialSummary(NamedTuple):
    total_revenue: Decimal
    total_management_fees: Decimal
    total_service_charges: Decimal
    total_net_remittance: Decimal
    transaction_count: int
    vacant_unit_service_charge_deduction: Decimal


def _unit_rent(unit: Unit | None, tenant: Tenant | None) -> Decimal:
    if unit is not None and to_decimal(unit.rent_amount) > 0:
        return to_decimal(unit.rent_amount)
    if tenant is not None and tenant.lease is not None:
        return to_decimal(tenant.lease.rent)
    return ZERO


def _unit_service_charge(unit: Unit | None, tenant: Tenant | None) -> Decimal:
    if unit is not None and unit.service_charge is not None:
        return to_decimal(unit.service_charge)
    if tenant is not None and tenant.lease is not None:
        return to_decimal(tenant.lease.service_charge)
    return ZERO


def is_initial_letting(rent_for_month: str | None, unit: Unit | None, tenant: Tenant | None) -> bool:
    """First month of the first lease on a unit let for a client shortly after handover."""
    if not rent_for_month or unit is None or tenant is None or tenant.lease is None:
        return False
    if unit.management_status != ManagementStatus.RENTED_FOR_CLIENTS:
        return False
    lease_start = tenant.lease.start_date
    if lease_start is None or unit.handover_date is None:
        return False
    if rent_for_month != month_key(lease_start):
        return False
    gap = months_between(unit.handover_date, lease_start)
    return 0 <= gap <= INITIAL_LETTING_WINDOW_MONTHS


def calculate_transaction_breakdown(
    payment: Payment,
    unit: Unit | None,
    tenant: Tenant | None,
) -> TransactionBreakdown:
    """
    Split a rent payment into service charge, management fee and landlord net.

    The management fee is 5% of the unit's standard rent, pro-rated by the
    share of that rent the payment covers. The service charge is waived for
    the handover month. The initial letting month instead carries a flat
    fee of half the unit rent and no service charge.

    Args:
        payment: Rent payment (amount and rent_for_month are used)
        unit: Unit the payment is for; lease terms are used when missing
        tenant: Paying tenant

    Returns:
        TransactionBreakdown rounded to whole currency units
    """
    gross = to_decimal(payment.amount)
    unit_rent = _unit_rent(unit, tenant)
    service_charge = _unit_service_charge(unit, tenant)
    rent_for_month = payment.rent_for_month

    if (
        rent_for_month
        and unit is not None
        and unit.handover_date is not None
        and rent_for_month[:7] == month_key(unit.handover_date)
    ):
        service_charge = ZERO

    if unit_rent > 0:
        management_fee = MANAGEMENT_FEE_RATE * unit_rent * (gross / unit_rent)
    else:
        management_fee = ZERO

    if is_initial_letting(rent_for_month, unit, tenant):
        management_fee = INITIAL_LETTING_FEE_RATE * unit_rent
        service_charge = ZERO

    net = gross - service_charge - management_fee
    return TransactionBreakdown(
        gross=round_money(gross),
        service_charge_deduction=round_money(service_charge),
        management_fee=round_money(management_fee),
        net_to_landlord=round_money(net),
    )


def _virtual_payment(payment: Payment, amount: Decimal, rent_for_month: str | None) -> Payment:
    """Transient copy of a payment with its amount and month replaced."""
    return Payment(
        id=payment.id,
        tenant_id=payment.tenant_id,
        amount=amount,
        payment_date=payment.payment_date,
        type=payment.type,
        status=payment.status,
        rent_for_month=rent_for_month,
    )


def generate_landlord_transactions(
    payments: Iterable[Payment],
    tenants: Iterable[Tenant],
    properties: Iterable[Property],
    landlord: Landlord | None = None,
) -> list[LandlordTransaction]:
    """
    Build landlord statement lines from paid rent payments.

    A tenant's first payment above 1.5x the unit rent is treated as the
    move-in lump sum and has the deposits removed. Payments above 1.1x the
    unit rent are unrolled into one line per month starting at the month
    they were paid for, with any remainder shown as a partial month.

    Args:
        payments: Payments to consider (only Paid Rent payments are used)
        tenants: Tenants the payments belong to
        properties: Properties with units
        landlord: Restrict to units this landlord owns

    Returns:
        Statement lines in payment date order
    """
    units: dict[tuple[int, str], tuple[int, Unit]] = {}
    for prop in properties:
        for unit in prop.units:
            units[(prop.id, unit.name)] = (prop.id, unit)
    tenant_map = {t.id: t for t in tenants}

    rent_payments = sorted(
        (p for p in payments if p.status == PaymentStatus.PAID and p.type == PaymentType.RENT),
        key=lambda p: p.payment_date,
    )

    seen_tenants: set[int] = set()
    transactions: list[LandlordTransaction] = []

    for payment in rent_payments:
        tenant = tenant_map.get(payment.tenant_id)
        if tenant is None:
            continue
        is_first_payment = tenant.id not in seen_tenants
        seen_tenants.add(tenant.id)

        property_id, unit = units.get((tenant.property_id, tenant.unit_name), (None, None))
        if landlord is not None and (unit is None or not landlord.owns(property_id, unit)):
            continue

        unit_rent = _unit_rent(unit, tenant)
        unit_type = unit.unit_type.value if unit is not None and unit.unit_type else "N/A"
        amount = to_decimal(payment.amount)

        if is_first_payment and unit_rent > 0 and amount > unit_rent * LUMP_SUM_DEPOSIT_FACTOR:
            deposits = to_decimal(tenant.security_deposit) + to_decimal(tenant.water_deposit)
            amount = max(ZERO, amount - deposits)

        if amount <= 0:
            continue

        if unit_rent > 0 and amount > unit_rent * LUMP_SUM_UNROLL_FACTOR:
            if payment.rent_for_month:
                month = parse_month(payment.rent_for_month)
            elif tenant.lease is not None and tenant.lease.start_date is not None:
                month = start_of_month(tenant.lease.start_date)
            else:
                month = start_of_month(payment.payment_date)

            remaining = amount
            while remaining >= unit_rent:
                virtual = _virtual_payment(payment, unit_rent, month_key(month))
                transactions.append(
                    LandlordTransaction(
                        payment_id=payment.id,
                        date=payment.payment_date,
                        unit_name=tenant.unit_name,
                        unit_type=unit_type,
                        for_month=format_month(month),
                        breakdown=calculate_transaction_breakdown(virtual, unit, tenant),
                    )
                )
                remaining -= unit_rent
                month = add_months(month, 1)

            if remaining > 1:
                virtual = _virtual_payment(payment, remaining, month_key(month))
                transactions.append(
                    LandlordTransaction(
                        payment_id=payment.id,
                        date=payment.payment_date,
                        unit_name=tenant.unit_name,
                        unit_type=unit_type,
                        for_month=f"Partial - {format_month(month)}",
                        breakdown=calculate_transaction_breakdown(virtual, unit, tenant),
                    )
                )
        else:
            if payment.rent_for_month:
                for_month = format_month(parse_month(payment.rent_for_month))
            else:
                for_month = "N/A"
            virtual = _virtual_payment(payment, amount, payment.rent_for_month)
            transactions.append(
                LandlordTransaction(
                    payment_id=payment.id,
                    date=payment.payment_date,
                    unit_name=tenant.unit_name,
                    unit_type=unit_type,
                    for_month=for_month,
                    breakdown=calculate_transaction_breakdown(virtual, unit, tenant),
                )
            )

    return transactions


def aggregate_financials(
    payments: Iterable[Payment],
    tenants: Iterable[Tenant],
    properties: Iterable[Property],
) -> FinancialSummary:
    """
    Totals across all paid rent payments.

    The service charge of vacant, handed-over units is owed by their owners
    and is deducted from the net remittance.
    """
    properties = list(properties)
    unit_map = {}
    for prop in properties:
        for unit in prop.units:
            unit_map[(prop.id, unit.name)] = unit
    tenant_map = {t.id: t for t in tenants}

    total_revenue = ZERO
    total_fees = ZERO
    total_service_charges = ZERO
    total_net = ZERO
    count = 0

    for payment in payments:
        if payment.status != PaymentStatus.PAID or payment.type != PaymentType.RENT:
            continue
        tenant = tenant_map.get(payment.tenant_id)
        unit = unit_map.get((tenant.property_id, tenant.unit_name)) if tenant else None
        breakdown = calculate_transaction_breakdown(payment, unit, tenant)

        total_revenue += breakdown.gross
        total_fees += breakdown.management_fee
        total_service_charges += breakdown.service_charge_deduction
        total_net += breakdown.net_to_landlord
        count += 1

    vacant_deduction = ZERO
    for prop in properties:
        for unit in prop.units:
            if unit.status == UnitStatus.VACANT and unit.handover_status == HandoverStatus.HANDED_OVER:
                vacant_deduction += to_decimal(unit.service_charge)

    logger.debug(f"Aggregated {count} rent payments, vacant deduction {vacant_deduction}")
    return FinancialSummary(
        total_revenue=total_revenue,
        total_management_fees=total_fees,
        total_service_charges=total_service_charges,
        total_net_remittance=total_net - vacant_deduction,
        transaction_count=count,
        vacant_unit_service_charge_deduction=vacant_deduction,
    )


__all__ = [
    "FinancialSummary",
    "LandlordTransaction",
    "TransactionBreakdown",
    "aggregate_financials",
    "calculate_transaction_breakdown",
    "generate_landlord_transactions",
    "is_initial_letting",
]
