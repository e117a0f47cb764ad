from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


# Quantize a price or amount to cents
def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)
