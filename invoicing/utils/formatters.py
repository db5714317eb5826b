"""
Formatting helpers for templates, PDFs and emails.
Numbers and dates follow German conventions (1.234,56 / 31.12.2026).
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional

Number = Union[int, float, Decimal, str, None]


def _group_thousands(integer_part: str) -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def num_de(value: Number, decimals: Optional[int] = None) -> str:
    """
    Format a number German style: dot for thousands, comma for decimals.
    Without ``decimals`` trailing zeros are dropped.

    Examples:
        num_de(1500) -> "1.500"
        num_de(2.5) -> "2,5"
        num_de(1500.75, 2) -> "1.500,75"
        num_de(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals)

    sign = "-" if num < 0 else ""
    num_str = f"{abs(num):f}"

    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        if decimals is None:
            decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    integer_formatted = _group_thousands(integer_part)
    if decimal_part:
        return f"{sign}{integer_formatted},{decimal_part}"
    return f"{sign}{integer_formatted}"


def money_de(value: Number, currency: str = "€") -> str:
    """
    Format an amount with exactly 2 decimals and the currency sign.

    Examples:
        money_de(1500) -> "1.500,00 €"
        money_de(-3.5) -> "-3,50 €"
    """
    if value is None or value == "":
        return "-"
    formatted = num_de(value, 2)
    if formatted == "-":
        return formatted
    return f"{formatted} {currency}" if currency else formatted


def percent(value: Number) -> str:
    """Tax rate display: 19 -> "19 %", 7.5 -> "7,5 %"."""
    formatted = num_de(value)
    if formatted == "-":
        return formatted
    return f"{formatted} %"


def date_de(value: Union[date, datetime, None]) -> str:
    """
    Format a date as DD.MM.YYYY.

    Examples:
        date_de(date(2026, 1, 12)) -> "12.01.2026"
    """
    if value is None:
        return "-"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d.%m.%Y")


def datetime_de(value: Union[datetime, None]) -> str:
    if not isinstance(value, datetime):
        return "-"
    return value.strftime("%d.%m.%Y %H:%M")


MONTH_NAMES_DE = (
    'Januar', 'Februar', 'März', 'April', 'Mai', 'Juni',
    'Juli', 'August', 'September', 'Oktober', 'November', 'Dezember',
)


def month_name_de(month: int) -> str:
    """1 -> "Januar"."""
    if not month or not 1 <= int(month) <= 12:
        return "-"
    return MONTH_NAMES_DE[int(month) - 1]
