"""Integer money helpers. Amounts are minor currency units."""

from decimal import ROUND_HALF_UP, Decimal


def percent_of(amount: int, rate: Decimal) -> int:
    """``amount * rate`` rounded half-up to a whole unit (sign-symmetric)."""
    return int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_to_nearest(amount: int, unit: int) -> int:
    """Round half-up to the nearest multiple of ``unit``."""
    steps = (Decimal(amount) / Decimal(unit)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(steps) * unit
