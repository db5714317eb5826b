"""Helpers for reading document forms (header dates and repeated line-item fields)."""
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from invoicing.exceptions import ValidationError
from invoicing.utils.number_format import parse_de_number

ITEM_FIELD_PATTERN = re.compile(r"^items\[(\d+)\]\[(\w+)\]$")
ITEM_FIELDS = ('product_id', 'description', 'quantity', 'unit', 'unit_price', 'tax_rate')
_NUMBER_FIELDS = ('quantity', 'unit_price', 'tax_rate')


def parse_date(value: Optional[str], field: str = None) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (date inputs) or ``DD.MM.YYYY``; blank is None."""
    if not value or not value.strip():
        return None
    value = value.strip()
    for fmt in ('%Y-%m-%d', '%d.%m.%Y'):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f'Invalid date: {value}', field=field)


def parse_items(form) -> List[Dict[str, Any]]:
    """
    Collect line items posted as ``items[<n>][<field>]``.

    Rows are returned in index order; rows left completely empty (the
    blank row the form always offers) are skipped.
    """
    rows: Dict[int, Dict[str, Any]] = {}
    for key in form.keys():
        match = ITEM_FIELD_PATTERN.match(key)
        if not match or match.group(2) not in ITEM_FIELDS:
            continue
        index, field = int(match.group(1)), match.group(2)
        rows.setdefault(index, {})[field] = form.get(key, '').strip()

    items = []
    for index in sorted(rows):
        row = rows[index]
        if not any(row.get(field) for field in ('description', 'unit_price', 'product_id')):
            continue
        for field in _NUMBER_FIELDS:
            try:
                row[field] = parse_de_number(row.get(field))
            except ValueError as e:
                raise ValidationError(f'Line {len(items) + 1}: {e}', field=field)
        row['product_id'] = int(row['product_id']) if (row.get('product_id') or '').isdigit() else None
        items.append(row)
    return items
