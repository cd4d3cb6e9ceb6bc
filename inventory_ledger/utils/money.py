from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

QTY_PLACES = Decimal("0.0001")
COST_PLACES = Decimal("0.000001")
VALUE_PLACES = Decimal("0.01")

ZERO = Decimal("0")


def to_decimal(value: str | int | float | Decimal | None) -> Decimal | None:
    """Convert to Decimal without inheriting binary float noise."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"not a decimal number: {value!r}")


def quantize_qty(value) -> Decimal:
    return to_decimal(value).quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


def quantize_cost(value) -> Decimal:
    return to_decimal(value).quantize(COST_PLACES, rounding=ROUND_HALF_UP)


def quantize_value(value) -> Decimal:
    return to_decimal(value).quantize(VALUE_PLACES, rounding=ROUND_HALF_UP)


def extended_value(quantity, unit_cost) -> Decimal:
    """|quantity| * unit_cost rounded to the currency minor unit."""
    if unit_cost is None:
        return quantize_value(ZERO)
    return quantize_value(abs(to_decimal(quantity)) * to_decimal(unit_cost))
