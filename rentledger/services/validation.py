"""Payment input validation, run before any balance is touched."""

from datetime import date
from decimal import Decimal, InvalidOperation

from rentledger.models import PaymentType, Tenant
from rentledger.services.billing_utils import to_decimal
from rentledger.services.errors import ValidationError

MAX_PAYMENT_AMOUNT = Decimal("1000000")


def validate_payment(
    amount,
    payment_date: date,
    tenant: Tenant,
    payment_type: PaymentType,
    today: date | None = None,
) -> None:
    """
    Check a single payment entry against amount and date limits.

    Adjustments are signed (positive debits, negative credits) and only need
    to be non-zero; every other type must be strictly positive. Both are
    capped at MAX_PAYMENT_AMOUNT in absolute value.

    Args:
        amount: Payment amount
        payment_date: Date the money was received
        tenant: Account the payment is for
        payment_type: Type of payment
        today: Reference date for the future-date check (default: today)

    Raises:
        ValidationError: With a human-readable reason when the entry is rejected
    """
    try:
        value = to_decimal(amount)
    except (InvalidOperation, TypeError) as e:
        raise ValidationError("Payment amount must be a number.") from e
    if not value.is_finite():
        raise ValidationError("Payment amount must be a number.")
    today = today or date.today()

    if payment_type == PaymentType.ADJUSTMENT:
        if value == 0:
            raise ValidationError("Adjustment amount cannot be zero.")
        if abs(value) > MAX_PAYMENT_AMOUNT:
            raise ValidationError(
                f"Adjustment amount cannot exceed {MAX_PAYMENT_AMOUNT:,} in either direction."
            )
    else:
        if value <= 0:
            raise ValidationError("Payment amount must be greater than zero.")
        if value > MAX_PAYMENT_AMOUNT:
            raise ValidationError(f"Payment amount cannot exceed {MAX_PAYMENT_AMOUNT:,}.")

    if payment_date > today:
        raise ValidationError("Payment date cannot be in the future.")

    lease = tenant.lease
    if lease is not None and lease.start_date is not None and payment_date < lease.start_date:
        raise ValidationError(
            f"Payment date {payment_date.isoformat()} is before the lease start date "
            f"{lease.start_date.isoformat()}."
        )
