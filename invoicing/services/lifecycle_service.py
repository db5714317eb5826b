"""
Document lifecycle: status transitions for invoices and quotes, payment,
overdue maintenance and quote-to-invoice conversion.
"""
import logging
from datetime import date, timedelta
from typing import FrozenSet, Union

from invoicing.exceptions import InvalidTransitionError, NotConvertibleError, NotFoundError
from invoicing.models import Invoice, InvoiceItem, InvoiceStatus, Quote, QuoteStatus
from invoicing.services.numbering_service import INVOICE, reserve_document_number

logger = logging.getLogger(__name__)

# Due date of invoices created from quotes. Fixed on purpose; it does not
# follow CompanySettings.default_payment_terms.
CONVERSION_DUE_DAYS = 14

INVOICE_TRANSITIONS = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED}),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

QUOTE_TRANSITIONS = {
    QuoteStatus.DRAFT: frozenset({QuoteStatus.SENT}),
    QuoteStatus.SENT: frozenset({QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED}),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
}


def _coerce_status(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise InvalidTransitionError(enum_cls.__name__.replace('Status', '').lower(), None, value)


def allowed_invoice_transitions(invoice: Invoice) -> FrozenSet[InvoiceStatus]:
    return INVOICE_TRANSITIONS[invoice.status]


def allowed_quote_transitions(quote: Quote) -> FrozenSet[QuoteStatus]:
    return QUOTE_TRANSITIONS[quote.status]


def check_invoice_transition(current: InvoiceStatus, requested: InvoiceStatus) -> None:
    if requested not in INVOICE_TRANSITIONS[current]:
        raise InvalidTransitionError('invoice', current, requested)


def check_quote_transition(current: QuoteStatus, requested: QuoteStatus) -> None:
    if requested not in QUOTE_TRANSITIONS[current]:
        raise InvalidTransitionError('quote', current, requested)


def display_status(invoice: Invoice, today: date = None) -> InvoiceStatus:
    """Read-time invoice status (sent and past due -> overdue)."""
    return invoice.effective_status(today)


def display_quote_status(quote: Quote, today: date = None) -> QuoteStatus:
    """Read-time quote status (sent and past validity -> expired)."""
    return quote.effective_status(today)


def set_invoice_status(session, invoice: Invoice, new_status: Union[InvoiceStatus, str]) -> Invoice:
    """
    Move an invoice to a new status and persist it.

    Raises:
        InvalidTransitionError: If the edge is not in INVOICE_TRANSITIONS.
    """
    new_status = _coerce_status(InvoiceStatus, new_status)
    check_invoice_transition(invoice.status, new_status)

    try:
        old_status = invoice.status
        invoice.status = new_status
        session.commit()
        logger.info(
            f"[LIFECYCLE] Invoice {invoice.invoice_number}: {old_status.value} -> {new_status.value}"
        )
        return invoice
    except Exception:
        session.rollback()
        raise


def set_quote_status(session, quote: Quote, new_status: Union[QuoteStatus, str]) -> Quote:
    """
    Move a quote to a new status and persist it.

    Raises:
        InvalidTransitionError: If the edge is not in QUOTE_TRANSITIONS.
    """
    new_status = _coerce_status(QuoteStatus, new_status)
    check_quote_transition(quote.status, new_status)

    try:
        old_status = quote.status
        quote.status = new_status
        session.commit()
        logger.info(
            f"[LIFECYCLE] Quote {quote.quote_number}: {old_status.value} -> {new_status.value}"
        )
        return quote
    except Exception:
        session.rollback()
        raise


def mark_paid(session, invoice: Invoice, paid_date: date = None) -> Invoice:
    """
    Mark an invoice as paid on ``paid_date`` (defaults to today).

    Allowed from sent (including a derived overdue) and stored overdue.
    """
    if paid_date is None:
        paid_date = date.today()

    check_invoice_transition(invoice.status, InvoiceStatus.PAID)

    try:
        invoice.status = InvoiceStatus.PAID
        invoice.paid_date = paid_date
        session.commit()
        logger.info(f"[LIFECYCLE] Invoice {invoice.invoice_number} paid on {paid_date.isoformat()}")
        return invoice
    except Exception:
        session.rollback()
        raise


def mark_overdue_invoices(session, today: date = None) -> int:
    """
    Persist the overdue status for every sent invoice past its due date.

    Args:
        session: SQLAlchemy session
        today: Reference date (defaults to date.today())

    Returns:
        Number of invoices updated
    """
    if today is None:
        today = date.today()

    try:
        invoices = session.query(Invoice).filter(
            Invoice.status == InvoiceStatus.SENT,
            Invoice.due_date < today
        ).all()

        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE

        session.commit()
        if invoices:
            logger.info(f"[LIFECYCLE] Marked {len(invoices)} invoice(s) overdue as of {today.isoformat()}")
        return len(invoices)
    except Exception:
        session.rollback()
        raise


def convert_quote_to_invoice(session, quote_id: int, settings, today: date = None) -> Invoice:
    """
    Turn a sent or accepted quote into a new draft invoice.

    Customer, items (by value, without product link), totals and notes are
    copied; the invoice gets the next invoice number, today's issue date and
    a due date CONVERSION_DUE_DAYS later. The quote is set to accepted and
    keeps a permanent reference to the invoice. Everything happens in one
    transaction.

    Raises:
        NotFoundError: Unknown quote.
        NotConvertibleError: Quote already converted or not sent/accepted.
    """
    if today is None:
        today = date.today()

    try:
        quote = session.query(Quote).filter(Quote.id == quote_id).with_for_update().first()
        if not quote:
            raise NotFoundError(f'Quote {quote_id} not found')

        if quote.converted_to_invoice_id is not None:
            raise NotConvertibleError(quote.quote_number, 'it was already converted to an invoice')
        if quote.status not in (QuoteStatus.SENT, QuoteStatus.ACCEPTED):
            raise NotConvertibleError(
                quote.quote_number, f"only sent or accepted quotes can be converted (status '{quote.status.value}')"
            )

        invoice = Invoice(
            invoice_number=reserve_document_number(session, INVOICE, settings, today),
            customer_id=quote.customer_id,
            status=InvoiceStatus.DRAFT,
            issue_date=today,
            due_date=today + timedelta(days=CONVERSION_DUE_DAYS),
            subtotal=quote.subtotal,
            tax_amount=quote.tax_amount,
            total=quote.total,
            is_small_business=quote.is_small_business,
            notes=quote.notes,
        )
        for item in quote.items:
            invoice.items.append(InvoiceItem(
                position=item.position,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
                total=item.total,
            ))

        session.add(invoice)
        session.flush()

        quote.status = QuoteStatus.ACCEPTED
        quote.converted_to_invoice_id = invoice.id

        session.commit()
        logger.info(f"[LIFECYCLE] Quote {quote.quote_number} converted to invoice {invoice.invoice_number}")
        return invoice
    except Exception:
        session.rollback()
        raise
