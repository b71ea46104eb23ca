"""
Module: erp_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for quantity and
    money columns.  Centralizes precision so that every model and service uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere.  Quantities and money are Decimal with explicit
      precision.
    - round_money() is the only sanctioned rounding for monetary values;
      ceil_to_increment() the only sanctioned rounding for material
      requirements (always up, never to nearest).
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import String

from erp_kernel.db.base import ExactDecimal

# Stock quantity, 9 decimal places
Quantity = Annotated[Decimal, ExactDecimal()]

# Monetary amount, 9 decimal places in storage; presented at 2
Money = Annotated[Decimal, ExactDecimal()]

# Percentage 0..100 (discount, tax, efficiency)
Percent = Annotated[Decimal, ExactDecimal()]

# Short identifier strings (document codes, SKUs)
ShortCode = Annotated[str, String(50)]

# Long text for notes and reasons
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
HUNDRED = Decimal("100")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to ``decimal_places`` (half-up by default).

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode.

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def ceil_to_increment(value: Decimal, increment: Decimal) -> Decimal:
    """
    Round ``value`` UP to the next multiple of ``increment``.

    Used for material requirements: under-provisioning is never acceptable,
    so 52.63 with increment 1 becomes 53 and with increment 0.01 stays
    52.63.

    Raises:
        ValueError: If increment is not positive.
    """
    if increment <= 0:
        raise ValueError(f"increment must be positive, got {increment}")
    units = (value / increment).to_integral_value(rounding=ROUND_CEILING)
    return units * increment
