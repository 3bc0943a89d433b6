"""Applying payments to account balances.

Rent-type payments settle due_balance first and carry any surplus as credit
in account_balance. Water payments only settle water readings and never
touch either balance.
"""

import logging
from datetime import date
from functools import reduce
from typing import Iterable

from rentledger.models import LeasePaymentStatus, PaymentType
from rentledger.services.account_state import AccountState
from rentledger.services.billing_utils import ZERO, to_decimal

logger = logging.getLogger(__name__)

# Balances still owed after this day of the month are overdue
DUE_DAY = 5


def recommended_payment_status(due_balance, on_date: date) -> LeasePaymentStatus:
    """Paid when nothing is owed, Pending up to the due day, Overdue after it."""
    if to_decimal(due_balance) <= 0:
        return LeasePaymentStatus.PAID
    if on_date.day <= DUE_DAY:
        return LeasePaymentStatus.PENDING
    return LeasePaymentStatus.OVERDUE


def apply_payment(
    state: AccountState,
    amount,
    payment_type: PaymentType,
    payment_date: date,
) -> AccountState:
    """
    Apply one validated payment to an account snapshot.

    Args:
        state: Current account snapshot
        amount: Payment amount (signed for adjustments)
        payment_type: Type of payment
        payment_date: Date the money was received

    Returns:
        New AccountState with balances, status and last payment date updated

    Raises:
        ValueError: If payment_type is not a known PaymentType
    """
    value = to_decimal(amount)
    due = state.due_balance
    credit = state.account_balance

    if payment_type == PaymentType.ADJUSTMENT:
        due = due + value
        if due < 0:
            credit = credit - due
            due = ZERO
        elif credit > 0:
            applied = min(credit, due)
            due -= applied
            credit -= applied
        last_payment_date = state.last_payment_date
    elif payment_type in (
        PaymentType.RENT,
        PaymentType.DEPOSIT,
        PaymentType.SERVICE_CHARGE,
        PaymentType.OTHER,
    ):
        funds = value + credit
        if funds >= due:
            credit = funds - due
            due = ZERO
        else:
            due = due - funds
            credit = ZERO
        last_payment_date = payment_date
    elif payment_type == PaymentType.WATER:
        last_payment_date = payment_date
    else:
        raise ValueError(f"Unknown payment type: {payment_type}")

    new_state = state._replace(
        due_balance=due,
        account_balance=credit,
        payment_status=recommended_payment_status(due, payment_date),
        last_payment_date=last_payment_date,
    )
    logger.debug(
        f"Applied {payment_type.value} {value}: due {state.due_balance} -> {due}, "
        f"credit {state.account_balance} -> {credit}"
    )
    return new_state


def apply_payments(state: AccountState, payments: Iterable) -> AccountState:
    """Fold a sequence of (amount, payment_type, payment_date) entries over a snapshot."""
    return reduce(
        lambda current, entry: apply_payment(current, entry[0], entry[1], entry[2]),
        payments,
        state,
    )


__all__ = ["DUE_DAY", "apply_payment", "apply_payments", "recommended_payment_status"]
