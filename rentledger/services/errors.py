"""Custom exception classes for billing operations.

Provides domain-specific exceptions for clear error handling and reporting.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class ValidationError(BillingError):
    """Input rejected before any state change (amount, date, lease terms).

    The message is meant to be shown to the operator verbatim.
    """

    pass


class NotFoundError(BillingError):
    """Account, property or unit required by the operation does not exist."""

    pass


class InconsistentStateError(BillingError):
    """Stored balances disagree with the reconstructed ledger.

    Repair with AccountService.force_recalculate_balance.
    """

    pass
