"""Quote service for creating, editing and listing quotes."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from invoicing.exceptions import (
    BusinessLogicError, ConstraintViolationError, NotFoundError, ValidationError
)
from invoicing.models import Customer, Quote, QuoteItem, QuoteStatus
from invoicing.services.calculation_service import calculate_totals
from invoicing.services.item_service import validate_items
from invoicing.services.lifecycle_service import check_quote_transition
from invoicing.services.numbering_service import QUOTE, reserve_document_number
from invoicing.services.settings_service import get_company_settings

logger = logging.getLogger(__name__)

DEFAULT_VALID_DAYS = 30


def get_quote(session, quote_id: int) -> Quote:
    quote = session.query(Quote).filter(Quote.id == quote_id).first()
    if not quote:
        raise NotFoundError(f'Quote {quote_id} not found')
    return quote


def _validate_header(session, data: Dict[str, Any], valid_days: int) -> Dict[str, Any]:
    customer_id = data.get('customer_id')
    if not customer_id:
        raise ValidationError('Please select a customer', field='customer_id')

    customer = session.query(Customer).filter(Customer.id == int(customer_id)).first()
    if not customer:
        raise NotFoundError(f'Customer {customer_id} not found')

    issue_date = data.get('issue_date') or date.today()
    valid_until = data.get('valid_until') or issue_date + timedelta(days=valid_days)
    if valid_until < issue_date:
        raise ValidationError('Valid-until date cannot be before the issue date', field='valid_until')

    return {
        'customer_id': customer.id,
        'issue_date': issue_date,
        'valid_until': valid_until,
        'notes': (data.get('notes') or '').strip() or None,
    }


def _apply_items(quote: Quote, validated_items: List[Dict[str, Any]], is_small_business: bool) -> None:
    quote.items = [QuoteItem(**item) for item in validated_items]

    totals = calculate_totals(validated_items, is_small_business).rounded()
    quote.is_small_business = is_small_business
    quote.subtotal = totals.subtotal
    quote.tax_amount = totals.tax_amount
    quote.total = totals.total


def create_quote(session, data: Dict[str, Any], items_data: List[Dict[str, Any]], settings=None,
                 valid_days: int = DEFAULT_VALID_DAYS) -> Quote:
    """
    Create a quote with its items and a freshly reserved number.

    Args:
        session: SQLAlchemy session
        data: customer_id, issue_date, valid_until, notes and optionally
            status ('draft' or 'sent')
        items_data: list of {description, quantity, unit, unit_price, tax_rate, product_id}
        settings: CompanySettings (loaded when omitted)
        valid_days: Validity used when ``valid_until`` is not given

    Returns:
        The persisted Quote
    """
    if settings is None:
        settings = get_company_settings(session)

    try:
        header = _validate_header(session, data, valid_days)
        validated_items = validate_items(session, items_data, settings.default_tax_rate)

        status = QuoteStatus(data.get('status') or QuoteStatus.DRAFT.value)
        if status != QuoteStatus.DRAFT:
            check_quote_transition(QuoteStatus.DRAFT, status)

        quote = Quote(
            quote_number=reserve_document_number(session, QUOTE, settings, date.today()),
            status=status,
            **header
        )
        _apply_items(quote, validated_items, settings.is_small_business)

        session.add(quote)
        session.commit()
        logger.info(f"[QUOTE] Created {quote.quote_number} total={quote.total}")
        return quote
    except Exception:
        session.rollback()
        raise


def update_quote(session, quote_id: int, data: Dict[str, Any], items_data: List[Dict[str, Any]], settings=None,
                 valid_days: int = DEFAULT_VALID_DAYS) -> Quote:
    """Replace header fields and all items of a draft quote."""
    if settings is None:
        settings = get_company_settings(session)

    try:
        quote = session.query(Quote).filter(Quote.id == quote_id).with_for_update().first()
        if not quote:
            raise NotFoundError(f'Quote {quote_id} not found')
        if not quote.is_editable:
            raise BusinessLogicError(
                f'Quote {quote.quote_number} is {quote.status.value} and can no longer be edited'
            )

        header = _validate_header(session, data, valid_days)
        validated_items = validate_items(session, items_data, settings.default_tax_rate)

        for key, value in header.items():
            setattr(quote, key, value)
        _apply_items(quote, validated_items, settings.is_small_business)

        session.commit()
        logger.info(f"[QUOTE] Updated {quote.quote_number} total={quote.total}")
        return quote
    except Exception:
        session.rollback()
        raise


def delete_quote(session, quote_id: int) -> None:
    """
    Delete a quote and its items.

    A converted quote keeps its invoice reference for good, so it cannot be
    deleted.
    """
    quote = get_quote(session, quote_id)
    if quote.is_converted:
        raise ConstraintViolationError(
            f'Quote {quote.quote_number} was converted to an invoice and cannot be deleted'
        )

    number = quote.quote_number
    try:
        session.delete(quote)
        session.commit()
        logger.info(f"[QUOTE] Deleted {number}")
    except Exception:
        session.rollback()
        raise


def list_quotes(session, status: Optional[str] = None, search: Optional[str] = None,
                customer_id: Optional[int] = None, today: date = None) -> List[Quote]:
    """List quotes, newest first; the status filter uses the read-time status."""
    if today is None:
        today = date.today()

    query = session.query(Quote).join(Customer)
    if customer_id:
        query = query.filter(Quote.customer_id == customer_id)
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Quote.quote_number).like(pattern),
            func.lower(Customer.company_name).like(pattern),
        ))

    quotes = query.order_by(Quote.issue_date.desc(), Quote.id.desc()).all()

    if status:
        try:
            wanted = QuoteStatus(status.lower())
        except ValueError:
            return quotes
        quotes = [q for q in quotes if q.effective_status(today) == wanted]

    return quotes
