"""Product catalog service."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from invoicing.exceptions import NotFoundError, ValidationError
from invoicing.models import Product
from invoicing.services.calculation_service import to_decimal

logger = logging.getLogger(__name__)


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Product name is required', field='name')

    try:
        price = to_decimal(data.get('price'))
        tax_rate = to_decimal(data.get('tax_rate'), to_decimal(19))
    except ValueError as e:
        raise ValidationError(str(e))
    if price < 0:
        raise ValidationError('Price cannot be negative', field='price')

    return {
        'name': name,
        'description': (data.get('description') or '').strip() or None,
        'unit': (data.get('unit') or '').strip() or 'Stück',
        'price': price,
        'tax_rate': tax_rate,
        'category': (data.get('category') or '').strip() or None,
    }


def get_product(session, product_id: int) -> Product:
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found')
    return product


def list_products(session, search: Optional[str] = None, category: Optional[str] = None,
                  include_inactive: bool = False) -> List[Product]:
    """Active catalog products by name; soft-deleted ones only on request."""
    query = session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.description).like(pattern),
        ))
    return query.order_by(Product.name).all()


def list_categories(session) -> List[str]:
    rows = session.query(Product.category).filter(
        Product.is_active.is_(True),
        Product.category.isnot(None)
    ).distinct().order_by(Product.category).all()
    return [row.category for row in rows]


def create_product(session, data: Dict[str, Any]) -> Product:
    try:
        product = Product(**_clean(data))
        session.add(product)
        session.commit()
        logger.info(f"[PRODUCT] Created product {product.id} '{product.name}'")
        return product
    except Exception:
        session.rollback()
        raise


def update_product(session, product_id: int, data: Dict[str, Any]) -> Product:
    """Update catalog data. Existing documents keep their copied values."""
    product = get_product(session, product_id)
    try:
        for key, value in _clean(data).items():
            setattr(product, key, value)
        session.commit()
        logger.info(f"[PRODUCT] Updated product {product.id}")
        return product
    except Exception:
        session.rollback()
        raise


def deactivate_product(session, product_id: int) -> Product:
    """Soft delete: the row stays so document items can keep pointing at it."""
    product = get_product(session, product_id)
    try:
        product.is_active = False
        session.commit()
        logger.info(f"[PRODUCT] Deactivated product {product.id}")
        return product
    except Exception:
        session.rollback()
        raise
