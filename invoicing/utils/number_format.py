"""Number parsing for form input in German (1.234,56) or plain (1234.56) notation."""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

DE_NUMBER_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")
PLAIN_NUMBER_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")


def parse_de_number(value: Optional[str], default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a number typed into a form.

    Accepted:
    - German notation: ``1.234,56``, ``1234,5``, ``2``
    - Plain notation: ``1234.56`` (what number inputs and JSON send)

    A single dot followed by exactly three digits (``1.234``) is read as a
    thousands separator, as a German user would mean it.

    Args:
        value: Raw string
        default: Returned for None or blank input

    Raises:
        ValueError: if the value is not a number in either notation.
    """
    if value is None:
        return default

    cleaned = str(value).strip().replace(' ', '').replace('€', '')
    if not cleaned:
        return default

    if DE_NUMBER_PATTERN.match(cleaned):
        normalized = cleaned.replace('.', '').replace(',', '.')
    elif PLAIN_NUMBER_PATTERN.match(cleaned):
        normalized = cleaned
    else:
        raise ValueError(f'Invalid number: {value}. Use 1.234,56')

    try:
        return Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid number: {value}. Use 1.234,56')


def parse_de_money(value: Optional[str]) -> Decimal:
    """Parse an amount and round it to cents; blank input is 0."""
    parsed = parse_de_number(value, Decimal('0'))
    return parsed.quantize(Decimal('0.01'))
