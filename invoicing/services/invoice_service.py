"""Invoice service with transactional logic."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from invoicing.exceptions import (
    BusinessLogicError, ConstraintViolationError, NotFoundError, ValidationError
)
from invoicing.models import Customer, Invoice, InvoiceItem, InvoiceStatus, Quote
from invoicing.services.calculation_service import calculate_totals
from invoicing.services.item_service import validate_items
from invoicing.services.lifecycle_service import check_invoice_transition
from invoicing.services.numbering_service import INVOICE, reserve_document_number
from invoicing.services.settings_service import get_company_settings

logger = logging.getLogger(__name__)


def get_invoice(session, invoice_id: int) -> Invoice:
    invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError(f'Invoice {invoice_id} not found')
    return invoice


def _validate_header(session, data: Dict[str, Any], settings) -> Dict[str, Any]:
    customer_id = data.get('customer_id')
    if not customer_id:
        raise ValidationError('Please select a customer', field='customer_id')

    customer = session.query(Customer).filter(Customer.id == int(customer_id)).first()
    if not customer:
        raise NotFoundError(f'Customer {customer_id} not found')

    issue_date = data.get('issue_date') or date.today()
    due_date = data.get('due_date') or issue_date + timedelta(days=settings.default_payment_terms)
    if due_date < issue_date:
        raise ValidationError('Due date cannot be before the issue date', field='due_date')

    return {
        'customer_id': customer.id,
        'issue_date': issue_date,
        'due_date': due_date,
        'delivery_date': data.get('delivery_date'),
        'notes': (data.get('notes') or '').strip() or None,
        'payment_terms': (data.get('payment_terms') or '').strip() or None,
    }


def _apply_items(invoice: Invoice, validated_items: List[Dict[str, Any]], is_small_business: bool) -> None:
    """Replace all items and recompute totals (never trusts client totals)."""
    invoice.items = [InvoiceItem(**item) for item in validated_items]

    totals = calculate_totals(validated_items, is_small_business).rounded()
    invoice.is_small_business = is_small_business
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.total = totals.total


def create_invoice(session, data: Dict[str, Any], items_data: List[Dict[str, Any]], settings=None) -> Invoice:
    """
    Create an invoice with its items and a freshly reserved number.

    Steps (one transaction):
    1. Validate customer, dates and items
    2. Calculate totals with the company's tax regime
    3. Reserve the next invoice number
    4. Insert invoice + items and commit

    Args:
        session: SQLAlchemy session
        data: customer_id, issue_date, due_date, delivery_date, notes,
            payment_terms and optionally status ('draft' or 'sent')
        items_data: list of {description, quantity, unit, unit_price, tax_rate, product_id}
        settings: CompanySettings (loaded when omitted)

    Returns:
        The persisted Invoice
    """
    if settings is None:
        settings = get_company_settings(session)

    try:
        header = _validate_header(session, data, settings)
        validated_items = validate_items(session, items_data, settings.default_tax_rate)

        status = InvoiceStatus(data.get('status') or InvoiceStatus.DRAFT.value)
        if status != InvoiceStatus.DRAFT:
            check_invoice_transition(InvoiceStatus.DRAFT, status)

        invoice = Invoice(
            invoice_number=reserve_document_number(session, INVOICE, settings, date.today()),
            status=status,
            **header
        )
        _apply_items(invoice, validated_items, settings.is_small_business)

        session.add(invoice)
        session.commit()
        logger.info(f"[INVOICE] Created {invoice.invoice_number} total={invoice.total}")
        return invoice
    except Exception:
        session.rollback()
        raise


def update_invoice(session, invoice_id: int, data: Dict[str, Any], items_data: List[Dict[str, Any]], settings=None) -> Invoice:
    """
    Replace header fields and all items of a draft invoice.

    Items are deleted and re-inserted, not diffed; totals are recomputed.

    Raises:
        BusinessLogicError: If the invoice is no longer a draft.
    """
    if settings is None:
        settings = get_company_settings(session)

    try:
        invoice = session.query(Invoice).filter(Invoice.id == invoice_id).with_for_update().first()
        if not invoice:
            raise NotFoundError(f'Invoice {invoice_id} not found')
        if not invoice.is_editable:
            raise BusinessLogicError(
                f'Invoice {invoice.invoice_number} is {invoice.status.value} and can no longer be edited'
            )

        header = _validate_header(session, data, settings)
        validated_items = validate_items(session, items_data, settings.default_tax_rate)

        for key, value in header.items():
            setattr(invoice, key, value)
        _apply_items(invoice, validated_items, settings.is_small_business)

        session.commit()
        logger.info(f"[INVOICE] Updated {invoice.invoice_number} total={invoice.total}")
        return invoice
    except Exception:
        session.rollback()
        raise


def delete_invoice(session, invoice_id: int) -> None:
    """
    Delete an invoice; its items and reminders go with it.

    Raises:
        ConstraintViolationError: If a quote was converted into this invoice.
    """
    invoice = get_invoice(session, invoice_id)

    source_quote = session.query(Quote).filter(Quote.converted_to_invoice_id == invoice.id).first()
    if source_quote:
        raise ConstraintViolationError(
            f'Invoice {invoice.invoice_number} was created from quote {source_quote.quote_number} '
            f'and cannot be deleted; cancel it instead.'
        )

    number = invoice.invoice_number
    try:
        session.delete(invoice)
        session.commit()
        logger.info(f"[INVOICE] Deleted {number}")
    except Exception:
        session.rollback()
        raise


def list_invoices(session, status: Optional[str] = None, search: Optional[str] = None,
                  customer_id: Optional[int] = None, today: date = None) -> List[Invoice]:
    """
    List invoices, newest first, filtered by display status and search text.

    The status filter uses the read-time status, so 'overdue' also matches
    sent invoices past their due date.
    """
    if today is None:
        today = date.today()

    query = session.query(Invoice).join(Customer)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Invoice.invoice_number).like(pattern),
            func.lower(Customer.company_name).like(pattern),
        ))

    invoices = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()

    if status:
        try:
            wanted = InvoiceStatus(status.lower())
        except ValueError:
            return invoices
        invoices = [inv for inv in invoices if inv.effective_status(today) == wanted]

    return invoices
