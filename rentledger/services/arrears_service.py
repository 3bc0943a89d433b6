"""Rent arrears per tenant and arrears exposure per landlord.

Water bills are billed separately from rent, so pending water readings are
subtracted from the stored due balance before anything is reported as rent
arrears. Stored balances are never modified here.
"""

import logging
from decimal import Decimal
from typing import Iterable, NamedTuple

from rentledger.models import (
    HandoverStatus,
    Property,
    Tenant,
    Unit,
    WaterBillStatus,
    WaterMeterReading,
)
from rentledger.services.billing_utils import ZERO, to_decimal

logger = logging.getLogger(__name__)


class TenantArrears(NamedTuple):
    tenant: Tenant
    arrears: Decimal


class UnitArrears(NamedTuple):
    """Per-unit line of a landlord arrears breakdown."""

    property_id: int
    unit: Unit
    tenant: Tenant | None
    tenant_arrears: Decimal
    vacant_service_charge: Decimal


class LandlordArrearsSummary(NamedTuple):
    total_tenant_arrears: Decimal
    vacant_unit_service_charge: Decimal
    total_deductions: Decimal
    breakdown: list[UnitArrears]


def pending_water_by_tenant(readings: Iterable[WaterMeterReading]) -> dict[int, Decimal]:
    """Sum of unpaid water bills per tenant id."""
    totals: dict[int, Decimal] = {}
    for reading in readings:
        if reading.status == WaterBillStatus.PAID or reading.tenant_id is None:
            continue
        totals[reading.tenant_id] = totals.get(reading.tenant_id, ZERO) + to_decimal(reading.amount)
    return totals


def rent_arrears(tenant: Tenant, pending_water: dict[int, Decimal]) -> Decimal:
    """Due balance net of the tenant's pending water bills, never negative."""
    return max(ZERO, to_decimal(tenant.due_balance) - pending_water.get(tenant.id, ZERO))


def calculate_tenants_in_arrears(
    tenants: Iterable[Tenant],
    water_readings: Iterable[WaterMeterReading],
) -> list[TenantArrears]:
    """
    List tenants with positive rent arrears, largest first.

    Args:
        tenants: Accounts to check
        water_readings: Water readings for those accounts (any status)

    Returns:
        TenantArrears entries sorted by arrears descending
    """
    pending = pending_water_by_tenant(water_readings)
    result = [
        TenantArrears(tenant=tenant, arrears=rent_arrears(tenant, pending)) for tenant in tenants
    ]
    result = [item for item in result if item.arrears > 0]
    return sorted(result, key=lambda item: item.arrears, reverse=True)


def calculate_landlord_arrears(
    landlord_id: int,
    properties: Iterable[Property],
    tenants: Iterable[Tenant],
    water_readings: Iterable[WaterMeterReading],
) -> LandlordArrearsSummary:
    """
    Arrears exposure across all units registered to a landlord.

    Occupied units contribute the occupant's rent arrears. Unoccupied units
    that have been handed over contribute their service charge, which the
    landlord owes for the month.

    Args:
        landlord_id: Landlord to report on
        properties: Properties with units
        tenants: Active accounts
        water_readings: Water readings (any status)

    Returns:
        LandlordArrearsSummary with totals and a per-unit breakdown
    """
    pending = pending_water_by_tenant(water_readings)
    tenant_by_unit = {(t.property_id, t.unit_name): t for t in tenants}

    total_tenant_arrears = ZERO
    vacant_service_charge = ZERO
    breakdown: list[UnitArrears] = []

    for prop in properties:
        for unit in prop.units:
            if unit.landlord_id != landlord_id:
                continue
            tenant = tenant_by_unit.get((prop.id, unit.name))
            if tenant is not None:
                arrears = rent_arrears(tenant, pending)
                total_tenant_arrears += arrears
                breakdown.append(UnitArrears(prop.id, unit, tenant, arrears, ZERO))
            else:
                charge = ZERO
                if unit.handover_status == HandoverStatus.HANDED_OVER:
                    charge = to_decimal(unit.service_charge)
                    vacant_service_charge += charge
                breakdown.append(UnitArrears(prop.id, unit, None, ZERO, charge))

    return LandlordArrearsSummary(
        total_tenant_arrears=total_tenant_arrears,
        vacant_unit_service_charge=vacant_service_charge,
        total_deductions=total_tenant_arrears + vacant_service_charge,
        breakdown=breakdown,
    )


class ArrearsService:
    """Read-only arrears reporting backed by an AccountRepository."""

    def __init__(self, repository):
        self.repository = repository

    def get_tenants_in_arrears(self) -> list[TenantArrears]:
        result = calculate_tenants_in_arrears(
            self.repository.fetch_tenants(),
            self.repository.fetch_all_water_readings(),
        )
        logger.info(f"Found {len(result)} tenants in arrears")
        return result

    def get_landlord_arrears_breakdown(self, landlord_id: int) -> LandlordArrearsSummary:
        summary = calculate_landlord_arrears(
            landlord_id,
            self.repository.fetch_properties(),
            self.repository.fetch_tenants(),
            self.repository.fetch_all_water_readings(),
        )
        logger.info(
            f"Landlord {landlord_id} arrears: tenants {summary.total_tenant_arrears}, "
            f"vacant units {summary.vacant_unit_service_charge}"
        )
        return summary


__all__ = [
    "ArrearsService",
    "LandlordArrearsSummary",
    "TenantArrears",
    "UnitArrears",
    "calculate_landlord_arrears",
    "calculate_tenants_in_arrears",
]
