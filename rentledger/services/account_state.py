"""Immutable snapshot of an account's billing state.

Payment application and reconciliation never touch ORM objects directly:
they take an AccountState and return a new one. The service layer copies
the final snapshot back onto the Tenant/Lease rows.
"""

from datetime import date
from decimal import Decimal
from typing import NamedTuple

from rentledger.models import LeasePaymentStatus, Tenant
from rentledger.services.billing_utils import to_decimal


class AccountState(NamedTuple):
    """Balances and billing cursor of one account."""

    due_balance: Decimal
    account_balance: Decimal
    payment_status: LeasePaymentStatus
    last_billed_period: str | None = None
    last_payment_date: date | None = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "AccountState":
        lease = tenant.lease
        return cls(
            due_balance=to_decimal(tenant.due_balance),
            account_balance=to_decimal(tenant.account_balance),
            payment_status=(
                lease.payment_status
                if lease is not None and lease.payment_status is not None
                else LeasePaymentStatus.PENDING
            ),
            last_billed_period=(lease.last_billed_period or None) if lease is not None else None,
            last_payment_date=lease.last_payment_date if lease is not None else None,
        )

    def apply_to(self, tenant: Tenant) -> None:
        """Write this snapshot onto the tenant (and its lease, when present)."""
        tenant.due_balance = self.due_balance
        tenant.account_balance = self.account_balance
        if tenant.lease is not None:
            tenant.lease.payment_status = self.payment_status
            tenant.lease.last_billed_period = self.last_billed_period
            tenant.lease.last_payment_date = self.last_payment_date


def account_updates(before: AccountState, after: AccountState) -> dict:
    """Field updates needed to move an account from one snapshot to another.

    Balances and payment status are always included; the billing cursor and
    last payment date only when they changed.
    """
    updates = {
        "due_balance": after.due_balance,
        "account_balance": after.account_balance,
        "lease.payment_status": after.payment_status,
    }
    if after.last_billed_period != before.last_billed_period:
        updates["lease.last_billed_period"] = after.last_billed_period
    if after.last_payment_date != before.last_payment_date:
        updates["lease.last_payment_date"] = after.last_payment_date
    return updates


__all__ = ["AccountState", "account_updates"]
