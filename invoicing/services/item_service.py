"""Line item validation and catalog snapshots shared by invoices and quotes."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from invoicing.exceptions import NotFoundError, ValidationError
from invoicing.models import Product
from invoicing.services.calculation_service import line_total, round_money, to_decimal

DEFAULT_UNIT = 'Stück'
QUANTITY_STEP = Decimal('0.001')


def item_from_product(product: Product, quantity: Any = 1) -> Dict[str, Any]:
    """
    Snapshot a catalog product as a line item.

    Description, unit, price and tax rate are copied so later product edits
    do not change documents that already use it.
    """
    description = product.name
    if product.description:
        description = f"{product.name}\n{product.description}"
    return {
        'product_id': product.id,
        'description': description,
        'quantity': to_decimal(quantity, Decimal('1')),
        'unit': product.unit,
        'unit_price': to_decimal(product.price),
        'tax_rate': to_decimal(product.tax_rate),
    }


def validate_items(session, items_data: List[Dict[str, Any]], default_tax_rate: Any = 19) -> List[Dict[str, Any]]:
    """
    Validate raw line items and normalize them for persistence.

    Args:
        session: SQLAlchemy session (used to check referenced products)
        items_data: List of dicts with description, quantity, unit,
            unit_price, tax_rate and optional product_id
        default_tax_rate: Rate used when an item does not specify one

    Returns:
        List of dicts with Decimal values, ``position`` and rounded ``total``

    Raises:
        ValidationError: No items, or an item without description / with a
            malformed number.
        NotFoundError: A referenced product does not exist.
    """
    if not items_data:
        raise ValidationError('At least one line item is required', field='items')

    product_ids = {int(item['product_id']) for item in items_data if item.get('product_id')}
    known_products = set()
    if product_ids:
        known_products = {
            row.id for row in session.query(Product.id).filter(Product.id.in_(product_ids)).all()
        }

    validated = []
    for position, item in enumerate(items_data):
        description = (item.get('description') or '').strip()
        if not description:
            raise ValidationError(f'Line {position + 1}: description is required', field='description')

        try:
            # Stored at column scale, so totals are computed from the stored values
            quantity = to_decimal(item.get('quantity'), Decimal('1')).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
            unit_price = round_money(item.get('unit_price'))
            tax_rate = round_money(to_decimal(item.get('tax_rate'), to_decimal(default_tax_rate)))
        except ValueError as e:
            raise ValidationError(f'Line {position + 1}: {e}')

        product_id: Optional[int] = int(item['product_id']) if item.get('product_id') else None
        if product_id is not None and product_id not in known_products:
            raise NotFoundError(f'Product {product_id} not found')

        validated.append({
            'position': position,
            'product_id': product_id,
            'description': description,
            'quantity': quantity,
            'unit': (item.get('unit') or '').strip() or DEFAULT_UNIT,
            'unit_price': unit_price,
            'tax_rate': tax_rate,
            'total': round_money(line_total(quantity, unit_price)),
        })

    return validated
