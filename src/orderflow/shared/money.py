"""Money arithmetic.

Amounts are stored as floats on aggregates (two decimal places) and computed
with ``Decimal``. The gateway works in integer minor units; conversion in both
directions goes through this module so charged and recorded amounts agree.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
MINOR_UNITS_PER_MAJOR = 100


def to_decimal(value) -> Decimal:
    """Quantize any numeric value to two decimal places (round-half-up)."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value if value is not None else 0).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price) -> Decimal:
    return to_decimal(to_decimal(unit_price) * quantity)


def sum_lines(lines) -> Decimal:
    """Sum ``quantity * unit_price`` over objects exposing both attributes."""
    total = Decimal("0.00")
    for line in lines:
        total += line_total(line.quantity, line.unit_price)
    return to_decimal(total)


def as_amount(value) -> float:
    """Quantized value in the float representation stored on aggregates."""
    return float(to_decimal(value))


def to_minor_units(amount) -> int:
    return int((to_decimal(amount) * MINOR_UNITS_PER_MAJOR).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(minor: int) -> Decimal:
    return to_decimal(Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR)
