from decimal import Decimal, ROUND_HALF_UP


def round_amount(value: Decimal | int | float) -> int:
    """Round to whole currency units, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_rate(amount: int, rate: Decimal | float) -> int:
    return round_amount(Decimal(amount) * Decimal(str(rate)))
