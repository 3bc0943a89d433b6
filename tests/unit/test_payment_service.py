"""Unit tests for payment application."""

from datetime import date
from decimal import Decimal

import pytest

from rentledger.models import LeasePaymentStatus, PaymentType
from rentledger.services.account_state import AccountState, account_updates
from rentledger.services.payment_service import (
    apply_payment,
    apply_payments,
    recommended_payment_status,
)


def state(due="0", credit="0", last_payment_date=None):
    return AccountState(
        due_balance=Decimal(due),
        account_balance=Decimal(credit),
        payment_status=LeasePaymentStatus.PENDING,
        last_billed_period="2024-03",
        last_payment_date=last_payment_date,
    )


class TestRecommendedPaymentStatus:
    """Test the due-day status rule."""

    def test_nothing_owed_is_paid(self):
        assert recommended_payment_status(Decimal("0"), date(2024, 3, 20)) == LeasePaymentStatus.PAID

    def test_owed_on_due_day_is_pending(self):
        assert recommended_payment_status(Decimal("1"), date(2024, 3, 5)) == LeasePaymentStatus.PENDING

    def test_owed_after_due_day_is_overdue(self):
        assert recommended_payment_status(Decimal("1"), date(2024, 3, 6)) == LeasePaymentStatus.OVERDUE


class TestApplyPayment:
    """Test single payment application."""

    def test_overpayment_moves_to_credit(self):
        """Test 20,000 due settled by 25,000 leaves 5,000 credit."""
        result = apply_payment(state(due="20000"), Decimal("25000"), PaymentType.RENT, date(2024, 3, 10))

        assert result.due_balance == Decimal("0")
        assert result.account_balance == Decimal("5000")
        assert result.payment_status == LeasePaymentStatus.PAID
        assert result.last_payment_date == date(2024, 3, 10)

    def test_partial_payment_uses_existing_credit(self):
        """Test that credit is consumed together with the new payment."""
        result = apply_payment(
            state(due="20000", credit="3000"), Decimal("5000"), PaymentType.RENT, date(2024, 3, 3)
        )

        assert result.due_balance == Decimal("12000")
        assert result.account_balance == Decimal("0")
        assert result.payment_status == LeasePaymentStatus.PENDING

    @pytest.mark.parametrize(
        "payment_type",
        [PaymentType.DEPOSIT, PaymentType.SERVICE_CHARGE, PaymentType.OTHER],
    )
    def test_other_account_payment_types_settle_due(self, payment_type):
        """Test that deposit, service charge and other payments settle the due balance."""
        result = apply_payment(state(due="1000"), Decimal("400"), payment_type, date(2024, 3, 8))

        assert result.due_balance == Decimal("600")
        assert result.payment_status == LeasePaymentStatus.OVERDUE

    def test_water_payment_leaves_balances_untouched(self):
        """Test that water payments never reach due or credit."""
        before = state(due="20000", credit="0")
        result = apply_payment(before, Decimal("1500"), PaymentType.WATER, date(2024, 3, 2))

        assert result.due_balance == before.due_balance
        assert result.account_balance == before.account_balance
        assert result.last_payment_date == date(2024, 3, 2)

    def test_positive_adjustment_debits(self):
        """Test that a positive adjustment increases the due balance."""
        result = apply_payment(state(due="1000"), Decimal("500"), PaymentType.ADJUSTMENT, date(2024, 3, 2))

        assert result.due_balance == Decimal("1500")
        assert result.account_balance == Decimal("0")

    def test_negative_adjustment_overflows_to_credit(self):
        """Test that a credit larger than the due balance becomes account credit."""
        result = apply_payment(
            state(due="1000", credit="200"), Decimal("-1500"), PaymentType.ADJUSTMENT, date(2024, 3, 2)
        )

        assert result.due_balance == Decimal("0")
        assert result.account_balance == Decimal("700")
        assert result.payment_status == LeasePaymentStatus.PAID

    def test_adjustment_keeps_last_payment_date(self):
        """Test that adjustments are not treated as payments received."""
        before = state(due="1000", last_payment_date=date(2024, 2, 1))
        result = apply_payment(before, Decimal("-100"), PaymentType.ADJUSTMENT, date(2024, 3, 2))

        assert result.last_payment_date == date(2024, 2, 1)

    def test_unknown_type_raises(self):
        """Test exhaustive handling of payment types."""
        with pytest.raises(ValueError, match="Unknown payment type"):
            apply_payment(state(due="1000"), Decimal("100"), "Bitcoin", date(2024, 3, 2))

    def test_balance_complementarity(self):
        """Test that after any payment at most one balance is non-zero."""
        current = state(due="20000")
        for amount, payment_type in [
            (Decimal("5000"), PaymentType.RENT),
            (Decimal("30000"), PaymentType.RENT),
            (Decimal("12000"), PaymentType.ADJUSTMENT),
            (Decimal("-2000"), PaymentType.ADJUSTMENT),
            (Decimal("800"), PaymentType.WATER),
        ]:
            current = apply_payment(current, amount, payment_type, date(2024, 3, 2))
            assert current.due_balance >= 0
            assert current.account_balance >= 0
            assert current.due_balance == 0 or current.account_balance == 0


class TestApplyPayments:
    """Test batch folding."""

    def test_fold_matches_sequential_application(self):
        """Test that a batch equals applying each entry in order."""
        entries = [
            (Decimal("5000"), PaymentType.RENT, date(2024, 3, 1)),
            (Decimal("-1000"), PaymentType.ADJUSTMENT, date(2024, 3, 2)),
            (Decimal("20000"), PaymentType.RENT, date(2024, 3, 3)),
        ]
        start = state(due="20000")

        expected = start
        for amount, payment_type, payment_date in entries:
            expected = apply_payment(expected, amount, payment_type, payment_date)

        assert apply_payments(start, entries) == expected
        assert expected.account_balance == Decimal("6000")

    def test_empty_batch_is_identity(self):
        start = state(due="100")
        assert apply_payments(start, []) == start


class TestAccountUpdates:
    """Test field update extraction."""

    def test_unchanged_cursor_fields_omitted(self):
        """Test that cursor and payment date are only reported when changed."""
        before = state(due="1000")
        after = before._replace(due_balance=Decimal("0"), payment_status=LeasePaymentStatus.PAID)

        updates = account_updates(before, after)

        assert updates == {
            "due_balance": Decimal("0"),
            "account_balance": Decimal("0"),
            "lease.payment_status": LeasePaymentStatus.PAID,
        }

    def test_changed_fields_included(self):
        before = state(due="1000")
        after = apply_payment(before, Decimal("1000"), PaymentType.RENT, date(2024, 3, 4))._replace(
            last_billed_period="2024-04"
        )

        updates = account_updates(before, after)

        assert updates["lease.last_billed_period"] == "2024-04"
        assert updates["lease.last_payment_date"] == date(2024, 3, 4)
