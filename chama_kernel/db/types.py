"""
Module: chama_kernel.db.types
Responsibility: Annotated type aliases and helpers for money and rate columns.
    Centralizes precision and rounding so every model and service uses the
    same definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

The aliases are resolved to column types through Base.type_annotation_map,
so ``amount: Mapped[Money]`` always becomes Numeric(15, 2).

CRITICAL: No floats anywhere in the kernel.  All monetary amounts use Decimal
with explicit precision.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric

# Monetary amount: 15 digits, 2 decimal places
Money = Annotated[Decimal, "money"]

# Percentage rate (e.g. 12.50 means 12.5%)
Rate = Annotated[Decimal, "rate"]


COLUMN_TYPES = {
    Money: Numeric(15, 2),
    Rate: Numeric(5, 2),
}


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied amount to Decimal.

    Floats are refused: ``Decimal(0.1)`` silently carries binary error.

    Raises:
        TypeError: If value is a float.
        ValueError: If value is not a number.
    """
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be floats; use Decimal or str")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given decimal places.

    This is the ONLY sanctioned rounding function for financial values in
    the kernel.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
