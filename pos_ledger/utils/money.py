"""Money and exchange-rate helpers shared by the ledger services."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

CENT = Decimal('0.01')
RATE_PRECISION = Decimal('0.000001')
ZERO = Decimal('0.00')

Number = Union[int, float, Decimal, str]


def to_decimal(value: Number, field: str = 'value') -> Decimal:
    """
    Convert user input to Decimal without going through binary floats.

    Raises:
        ValueError: if the value is empty or not numeric.
    """
    if value is None or value == '':
        raise ValueError(f'{field} is required')
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'{field} must be a number')
    if not result.is_finite():
        raise ValueError(f'{field} must be a finite number')
    return result


def money(value: Number) -> Decimal:
    """Round to currency display precision (2 decimals, half up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def rate(value: Number) -> Decimal:
    """Round an exchange rate to 6 decimals."""
    return to_decimal(value).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


def format_money(value: Number, symbol: str = '') -> str:
    """
    Format an amount with thousands separators and 2 decimals.

    Examples:
        format_money(15000) -> "15,000.00"
        format_money(1234.5, '$') -> "$ 1,234.50"
    """
    formatted = f"{money(value):,.2f}"
    return f"{symbol} {formatted}" if symbol else formatted
