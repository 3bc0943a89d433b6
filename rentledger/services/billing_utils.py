"""Month arithmetic and money helpers shared by the billing services.

Billing months are carried around as "YYYY-MM" keys (the format stored in
Lease.last_billed_period and Payment.rent_for_month) and as first-of-month
dates for arithmetic.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from dateutil.relativedelta import relativedelta

# A unit handed over on or before this day is billed from the next month
HANDOVER_CUTOFF_DAY = 10

MONTH_KEY_FORMAT = "%Y-%m"

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert a numeric value (or None) to Decimal; None becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round to whole currency units, half up."""
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    return day + relativedelta(months=months)


def month_key(day: date) -> str:
    """Format a date as its "YYYY-MM" billing month."""
    return day.strftime(MONTH_KEY_FORMAT)


def parse_month(key: str) -> date:
    """Parse a "YYYY-MM" key (or a longer ISO date) to the first of that month.

    Raises:
        ValueError: If the key is not a valid month
    """
    if not key:
        raise ValueError("Empty month key")
    year, month = key[:7].split("-")
    return date(int(year), int(month), 1)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month (may be negative)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def iter_months(start: date, end: date) -> Iterator[date]:
    """Yield the first day of every month from start's month to end's month, inclusive."""
    current = start_of_month(start)
    last = start_of_month(end)
    while current <= last:
        yield current
        current = add_months(current, 1)


def first_billable_month(handover_date: date) -> date:
    """First month a handed-over unit accrues service charge.

    Handover on or before the 10th waives the rest of that month; later
    handovers also waive the following month.
    """
    offset = 1 if handover_date.day <= HANDOVER_CUTOFF_DAY else 2
    return start_of_month(add_months(handover_date, offset))


def format_month(day: date) -> str:
    """Short label, e.g. "Jan 2024"."""
    return day.strftime("%b %Y")


def format_month_long(day: date) -> str:
    """Long label, e.g. "January 2024"."""
    return day.strftime("%B %Y")
