"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and utility functions for financial-grade
    column types.  Centralizes precision and rounding so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  All monetary amounts use Decimal with explicit
      precision; money_from_value() rejects floats.
    - round_money() is the only sanctioned rounding function for presented
      values.  Stored amounts are never rounded.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings (codes, statuses, methods)
ShortCode = Annotated[str, String(50)]

# Long text for descriptions and notes
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 9
DISPLAY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def money_from_value(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a payload value (str, int, Decimal) to Decimal.

    Floats are rejected: they cannot represent most decimal amounts exactly.

    Raises:
        ValueError: If value is a float, bool, None, or not numeric.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float) or value is None:
        raise ValueError(f"{field} must be a decimal string or integer, got {value!r}")
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"{field} is not a valid amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Used for report presentation only; ledger arithmetic stays exact.
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)
