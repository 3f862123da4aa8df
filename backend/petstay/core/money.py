"""Currency helpers shared by the pricing, refund and wallet code."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from .exceptions import ValidationException

CENTS = Decimal("0.01")
RATE_PRECISION = Decimal("0.0001")

Number = Union[Decimal, int, str, float]


def to_decimal(value: Number, field_name: str = "amount") -> Decimal:
    """Coerce a caller-supplied number to Decimal without float drift."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationException(
                f"{field_name} is not a valid number",
                code="INVALID_AMOUNT",
                details={field_name: str(value)},
            ) from exc
    if not result.is_finite():
        raise ValidationException(
            f"{field_name} is not a valid number",
            code="INVALID_AMOUNT",
            details={field_name: str(value)},
        )
    return result


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Convert a decimal currency amount (e.g. 95.00) to integer cents."""
    value = round_money(to_decimal(amount))
    return int(value * 100)


def from_minor_units(cents: int) -> Decimal:
    return round_money(Decimal(int(cents)) / 100)
