"""Half-up rounding shared by the rate controller and price statistics."""

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round to `digits` decimals with halves going up (2.5 -> 3, 0.25 -> 0.3).

    round() rounds halves to even, so it is not used here.
    """
    exponent = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def round_to_int(value: float) -> int:
    return int(round_half_up(value))
