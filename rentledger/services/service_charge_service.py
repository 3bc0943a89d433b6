"""Monthly service charge status for owner-held units and vacant-unit arrears."""

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, NamedTuple

from rentledger.models import (
    HandoverStatus,
    Landlord,
    ManagementStatus,
    OwnershipType,
    Payment,
    PaymentStatus,
    PaymentType,
    Property,
    PropertyOwner,
    Tenant,
    Unit,
    UnitStatus,
)
from rentledger.services.billing_utils import (
    ZERO,
    first_billable_month,
    format_month_long,
    iter_months,
    month_key,
    start_of_month,
    to_decimal,
)

logger = logging.getLogger(__name__)

UNASSIGNED_OWNER = "Unassigned"


class ServiceChargeStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    NOT_APPLICABLE = "N/A"


class OwnerRef(NamedTuple):
    """Homeowner or landlord a unit's service charge is attributed to."""

    key: str
    name: str
    owner: PropertyOwner | Landlord


class ServiceChargeAccount(NamedTuple):
    property_id: int
    property_name: str
    unit_name: str
    unit_service_charge: Decimal
    owner_key: str | None
    owner_name: str
    tenant_id: int | None
    tenant_name: str | None
    payment_status: ServiceChargeStatus
    payment_amount: Decimal | None = None
    payment_for_month: str | None = None


class GroupedServiceChargeAccount(NamedTuple):
    group_id: str
    owner_key: str | None
    owner_name: str
    units: list[ServiceChargeAccount]
    total_service_charge: Decimal
    payment_status: ServiceChargeStatus


class ArrearsMonth(NamedTuple):
    month: str
    amount: Decimal
    status: ServiceChargeStatus


class VacantUnitArrears(NamedTuple):
    property_id: int
    property_name: str
    unit_name: str
    handover_date: date
    months_in_arrears: int
    total_due: Decimal
    arrears_detail: list[ArrearsMonth]


class VacantArrearsAccount(NamedTuple):
    owner_key: str
    owner_name: str
    owner: PropertyOwner | Landlord
    total_due: Decimal
    units: list[VacantUnitArrears]


class ServiceChargeReport(NamedTuple):
    client_occupied_accounts: list[ServiceChargeAccount]
    managed_vacant_accounts: list[ServiceChargeAccount]
    vacant_arrears: list[VacantArrearsAccount]


def _landlord_ref(landlord: Landlord) -> OwnerRef:
    return OwnerRef(f"landlord-{landlord.id}", landlord.name, landlord)


def _owner_ref(owner: PropertyOwner) -> OwnerRef:
    return OwnerRef(f"owner-{owner.id}", owner.name, owner)


def is_billable_month(unit: Unit, selected_month: date) -> bool:
    """Whether service charge applies to the unit for the given month.

    Months before the first billable month after handover are waived. A
    handed-over unit with no recorded handover date is always billable.
    """
    if unit.handover_date is not None:
        return start_of_month(selected_month) >= first_billable_month(unit.handover_date)
    return unit.handover_status == HandoverStatus.HANDED_OVER


def group_accounts(accounts: Iterable[ServiceChargeAccount]) -> list[GroupedServiceChargeAccount]:
    """
    Group unit accounts by owner.

    Units without an owner each form their own group. A group is Pending if
    any unit is Pending, N/A only if every unit is N/A, otherwise Paid.
    """
    groups: dict[str, list[ServiceChargeAccount]] = {}
    for account in accounts:
        key = account.owner_key or f"unassigned-{account.property_name}-{account.unit_name}"
        groups.setdefault(key, []).append(account)

    result = []
    for key, units in groups.items():
        statuses = [u.payment_status for u in units]
        if ServiceChargeStatus.PENDING in statuses:
            status = ServiceChargeStatus.PENDING
        elif all(s == ServiceChargeStatus.NOT_APPLICABLE for s in statuses):
            status = ServiceChargeStatus.NOT_APPLICABLE
        else:
            status = ServiceChargeStatus.PAID
        result.append(
            GroupedServiceChargeAccount(
                group_id=key,
                owner_key=units[0].owner_key,
                owner_name=units[0].owner_name or UNASSIGNED_OWNER,
                units=units,
                total_service_charge=sum((u.unit_service_charge for u in units), ZERO),
                payment_status=status,
            )
        )
    return result


def _unit_account(
    prop: Property,
    unit: Unit,
    owner: OwnerRef | None,
    tenant: Tenant | None,
    tenant_payments: list[Payment],
    selected_month: date,
    display_owner_as_tenant: bool,
) -> ServiceChargeAccount:
    period = month_key(selected_month)
    charge = to_decimal(unit.service_charge)
    payment = next(
        (
            p
            for p in tenant_payments
            if p.type == PaymentType.SERVICE_CHARGE
            and p.status == PaymentStatus.PAID
            and p.rent_for_month == period
        ),
        None,
    )

    if charge <= 0 or not is_billable_month(unit, selected_month):
        status = ServiceChargeStatus.NOT_APPLICABLE
    elif payment is not None:
        status = ServiceChargeStatus.PAID
    else:
        status = ServiceChargeStatus.PENDING

    if display_owner_as_tenant:
        tenant_name = owner.name if owner else None
    else:
        tenant_name = tenant.name if tenant else None

    return ServiceChargeAccount(
        property_id=prop.id,
        property_name=prop.name,
        unit_name=unit.name,
        unit_service_charge=charge,
        owner_key=owner.key if owner else None,
        owner_name=owner.name if owner else UNASSIGNED_OWNER,
        tenant_id=tenant.id if tenant else None,
        tenant_name=tenant_name,
        payment_status=status,
        payment_amount=to_decimal(payment.amount) if payment is not None else None,
        payment_for_month=payment.rent_for_month if payment is not None else None,
    )


def _vacant_unit_arrears(
    prop: Property,
    unit: Unit,
    unit_payments: list[Payment],
    selected_month: date,
) -> VacantUnitArrears | None:
    first_month = first_billable_month(unit.handover_date)
    if first_month > start_of_month(selected_month):
        return None

    charge = to_decimal(unit.service_charge)
    months = list(iter_months(first_month, selected_month)) if charge > 0 else []

    paid_tracker = sum(
        (
            to_decimal(p.amount)
            for p in unit_payments
            if p.status == PaymentStatus.PAID and p.type != PaymentType.WATER
        ),
        ZERO,
    )

    detail = []
    for month in months:
        if paid_tracker >= charge:
            paid_tracker -= charge
            status = ServiceChargeStatus.PAID
        else:
            # Oldest months are settled first; once funds run out the rest stay pending
            paid_tracker = ZERO
            status = ServiceChargeStatus.PENDING
        detail.append(ArrearsMonth(format_month_long(month), charge, status))

    pending = [d for d in detail if d.status == ServiceChargeStatus.PENDING]
    total_due = sum((d.amount for d in pending), ZERO)
    if total_due <= 0:
        return None

    return VacantUnitArrears(
        property_id=prop.id,
        property_name=prop.name,
        unit_name=unit.name,
        handover_date=unit.handover_date,
        months_in_arrears=len(pending),
        total_due=total_due,
        arrears_detail=detail,
    )


def process_service_charge_data(
    properties: Iterable[Property],
    owners: Iterable[PropertyOwner],
    tenants: Iterable[Tenant],
    payments: Iterable[Payment],
    landlords: Iterable[Landlord],
    selected_month: date,
) -> ServiceChargeReport:
    """
    Build the service charge report for one month.

    Client-occupied units are units occupied by their owner under client
    management. Managed-vacant units are empty units let on the owner's
    behalf. Both need to be handed over to appear. Vacant arrears walk every
    billable month of a vacant, landlord-owned unit and settle months
    oldest-first against what has been paid for it.

    Args:
        properties: Properties with units
        owners: Homeowners with unit assignments
        tenants: Active accounts
        payments: All payments
        landlords: All landlords
        selected_month: Any date within the month to report on

    Returns:
        ServiceChargeReport with both account lists and vacant arrears grouped by owner
    """
    landlord_map = {landlord.id: _landlord_ref(landlord) for landlord in landlords}
    owner_by_unit: dict[tuple[int, str], OwnerRef] = {}
    for owner in owners:
        ref = _owner_ref(owner)
        for assignment in owner.assigned_units:
            owner_by_unit[(assignment.property_id, assignment.unit_name)] = ref

    tenant_by_unit = {(t.property_id, t.unit_name): t for t in tenants}
    payments_by_tenant: dict[int, list[Payment]] = {}
    for payment in payments:
        payments_by_tenant.setdefault(payment.tenant_id, []).append(payment)

    client_occupied: list[ServiceChargeAccount] = []
    managed_vacant: list[ServiceChargeAccount] = []
    arrears_by_owner: dict[str, VacantArrearsAccount] = {}

    for prop in properties:
        for unit in prop.units:
            key = (prop.id, unit.name)
            tenant = tenant_by_unit.get(key)
            tenant_payments = payments_by_tenant.get(tenant.id, []) if tenant else []
            handed_over = unit.handover_status == HandoverStatus.HANDED_OVER

            # Landlord takes precedence for status reports
            owner = landlord_map.get(unit.landlord_id) if unit.landlord_id else None
            owner = owner or owner_by_unit.get(key)

            if (
                unit.status == UnitStatus.CLIENT_OCCUPIED
                and unit.management_status == ManagementStatus.CLIENT_MANAGED
                and handed_over
            ):
                client_occupied.append(
                    _unit_account(prop, unit, owner, tenant, tenant_payments, selected_month, False)
                )

            if (
                unit.status == UnitStatus.VACANT
                and unit.management_status == ManagementStatus.RENTED_FOR_CLIENTS
                and handed_over
            ):
                managed_vacant.append(
                    _unit_account(prop, unit, owner, tenant, tenant_payments, selected_month, True)
                )

                if unit.ownership == OwnershipType.LANDLORD and unit.handover_date is not None:
                    # Homeowner assignment takes precedence for arrears
                    liable = owner_by_unit.get(key)
                    if liable is None and unit.landlord_id:
                        liable = landlord_map.get(unit.landlord_id)
                    if liable is None:
                        continue
                    arrears = _vacant_unit_arrears(prop, unit, tenant_payments, selected_month)
                    if arrears is None:
                        continue
                    group = arrears_by_owner.get(liable.key)
                    if group is None:
                        group = VacantArrearsAccount(liable.key, liable.name, liable.owner, ZERO, [])
                    group.units.append(arrears)
                    arrears_by_owner[liable.key] = group._replace(
                        total_due=group.total_due + arrears.total_due
                    )

    logger.info(
        f"Service charge report {month_key(selected_month)}: "
        f"{len(client_occupied)} client occupied, {len(managed_vacant)} managed vacant, "
        f"{len(arrears_by_owner)} owners with vacant arrears"
    )
    return ServiceChargeReport(
        client_occupied_accounts=client_occupied,
        managed_vacant_accounts=managed_vacant,
        vacant_arrears=list(arrears_by_owner.values()),
    )


class ServiceChargeService:
    """Service charge reporting backed by an AccountRepository."""

    def __init__(self, repository):
        self.repository = repository

    def get_report(self, selected_month: date) -> ServiceChargeReport:
        return process_service_charge_data(
            self.repository.fetch_properties(),
            self.repository.fetch_owners(),
            self.repository.fetch_tenants(),
            self.repository.fetch_all_payments(),
            self.repository.fetch_landlords(),
            selected_month,
        )

    def get_grouped_accounts(self, selected_month: date) -> list[GroupedServiceChargeAccount]:
        """Client-occupied and managed-vacant accounts grouped by owner."""
        report = self.get_report(selected_month)
        return group_accounts(report.client_occupied_accounts + report.managed_vacant_accounts)


__all__ = [
    "ArrearsMonth",
    "GroupedServiceChargeAccount",
    "ServiceChargeAccount",
    "ServiceChargeReport",
    "ServiceChargeService",
    "ServiceChargeStatus",
    "VacantArrearsAccount",
    "VacantUnitArrears",
    "group_accounts",
    "is_billable_month",
    "process_service_charge_data",
]
