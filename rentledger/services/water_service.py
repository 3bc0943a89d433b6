"""Water bill calculation from meter readings."""

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from rentledger.services.billing_utils import to_decimal
from rentledger.services.errors import ValidationError

# Price per unit of water consumed
WATER_RATE = Decimal("150")


class WaterBill(NamedTuple):
    consumption: Decimal
    rate: Decimal
    amount: Decimal


def calculate_water_bill(prior_reading, current_reading, rate=WATER_RATE) -> WaterBill:
    """Calculate a water bill.

    Formula: (current - prior) × rate

    Args:
        prior_reading: Previous meter reading
        current_reading: New meter reading
        rate: Price per unit (default: WATER_RATE)

    Returns:
        WaterBill with consumption, rate and amount (rounded to 2 decimal places)

    Raises:
        ValidationError: If readings are negative or the meter went backwards
    """
    prior = to_decimal(prior_reading)
    current = to_decimal(current_reading)
    rate = to_decimal(rate)

    if prior < 0 or current < 0:
        raise ValidationError("Meter readings cannot be negative.")
    if current < prior:
        raise ValidationError("Current reading cannot be lower than the prior reading.")
    if rate <= 0:
        raise ValidationError("Water rate must be positive.")

    consumption = current - prior
    amount = (consumption * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return WaterBill(consumption=consumption, rate=rate, amount=amount)


__all__ = ["WATER_RATE", "WaterBill", "calculate_water_bill"]
