"""
Document calculator: subtotal, tax per rate and grand total for line items.

All arithmetic is done in Decimal at full precision. Rounding to cents
happens once, when totals are written (see ``round_money``), never per tax
group, so the grouped display always adds up to the flat computation.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Iterable, Mapping

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class DocumentTotals:
    """Unrounded totals of a document."""
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    tax_groups: Dict[Decimal, Decimal] = field(default_factory=dict)

    def rounded(self) -> 'DocumentTotals':
        """
        Totals as stored: subtotal and tax rounded once, total derived from them.

        Deriving the total from the rounded parts keeps
        ``total == subtotal + tax_amount`` exact in the stored record.
        """
        subtotal = round_money(self.subtotal)
        tax_amount = round_money(self.tax_amount)
        return DocumentTotals(
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=subtotal + tax_amount,
            tax_groups=_round_groups(self.tax_groups, tax_amount)
        )


def _round_groups(tax_groups: Mapping[Decimal, Decimal], rounded_total: Decimal) -> Dict[Decimal, Decimal]:
    """
    Round each tax group to cents so the groups add up to ``rounded_total``.

    The cents lost or gained by rounding groups separately go to the group
    with the largest amount.
    """
    rounded = OrderedDict((rate, round_money(amount)) for rate, amount in tax_groups.items())
    residual = rounded_total - sum(rounded.values(), ZERO)
    if rounded and residual:
        largest = max(tax_groups, key=lambda rate: abs(tax_groups[rate]))
        rounded[largest] += residual
    return rounded


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce numbers, numeric strings and None to Decimal."""
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'Invalid number: {value!r}')


def round_money(value: Any) -> Decimal:
    """Round an amount to cents (commercial rounding)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def normalize_rate(rate: Any) -> Decimal:
    """Canonical form of a tax rate so 19, 19.0 and '19.00' compare and group equal."""
    rate = to_decimal(rate)
    if rate == rate.to_integral_value():
        return rate.quantize(Decimal('1'))
    return rate.normalize()


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    """Net amount of a single line: quantity x unit price (unrounded)."""
    return to_decimal(quantity, Decimal('1')) * to_decimal(unit_price)


def calculate_totals(items: Iterable[Any], is_small_business: bool = False) -> DocumentTotals:
    """
    Compute subtotal, tax and total for an ordered list of line items.

    Args:
        items: Dicts or objects exposing ``quantity``, ``unit_price`` and
            ``tax_rate`` (percent). Negative values are not rejected and
            combine arithmetically like any other value.
        is_small_business: When True no tax is computed at all; the item
            rates are kept on the items but never applied.

    Returns:
        DocumentTotals with unrounded values. ``tax_groups`` maps each
        distinct rate (in first-seen order) to its tax sum and is empty for
        small businesses.

    Examples:
        2 x 100 @ 19% and 1 x 50 @ 7% -> subtotal 250, tax 41.50, total 291.50
    """
    subtotal = ZERO
    tax_groups = OrderedDict()

    for item in items:
        amount = line_total(_field(item, 'quantity', 1), _field(item, 'unit_price', 0))
        subtotal += amount

        if is_small_business:
            continue

        rate = to_decimal(_field(item, 'tax_rate', 0))
        key = normalize_rate(rate)
        tax_groups[key] = tax_groups.get(key, ZERO) + amount * rate / HUNDRED

    tax_amount = sum(tax_groups.values(), ZERO)

    return DocumentTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
        tax_groups=tax_groups
    )


def calculate_document_totals(document: Any) -> DocumentTotals:
    """Totals of a persisted invoice or quote under the tax regime it was issued with (rounded)."""
    return calculate_totals(document.items, document.is_small_business).rounded()
