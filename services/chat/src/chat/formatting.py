"""
Display formatting for financial values handed back to the model.

All budget math happens in the data service; these helpers only render.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

Number = Union[int, float, Decimal, str, None]


def to_decimal(value: Number) -> Decimal:
    """Coerce a JSON number (or numeric string) to Decimal; None counts as 0."""
    if value is None:
        return Decimal(0)
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a numeric amount: {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return number


def format_currency(value: Number) -> str:
    """
    Render an amount as whole US dollars.

    >>> format_currency(1500000)
    '$1,500,000'
    >>> format_currency(-1234.5)
    '-$1,235'
    """
    try:
        amount = to_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        # More digits than the decimal context holds
        raise ValueError(f"Amount out of range: {value!r}") from e
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.0f}"


def format_percent(value: Number) -> str:
    """
    Render a percentage exactly as the service computed it.

    >>> format_percent(45.5)
    '45.5%'
    >>> format_percent(100.0)
    '100%'
    """
    number = to_decimal(value)
    if number == number.to_integral_value():
        return f"{int(number)}%"
    return f"{number.normalize():f}%"


def to_number(value: Any) -> float:
    """Raw numeric value alongside a formatted string, for downstream math."""
    return float(to_decimal(value))
