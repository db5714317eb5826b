"""
Payment reminders (Mahnwesen): overdue invoice tracking and dunning notices.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List

from invoicing.exceptions import BusinessLogicError, NotFoundError, ValidationError
from invoicing.models import Invoice, InvoiceStatus, Reminder, ReminderLevel
from invoicing.services.calculation_service import round_money, to_decimal
from invoicing.services.lifecycle_service import check_invoice_transition

logger = logging.getLogger(__name__)

MILD = 'mild'
MODERATE = 'moderate'
SEVERE = 'severe'

SEVERITY_LEVELS = (MILD, MODERATE, SEVERE)


@dataclass
class OverdueInvoice:
    """An unpaid invoice past its due date."""
    invoice: Invoice
    days_overdue: int

    @property
    def severity(self) -> str:
        return severity(self.days_overdue)

    @property
    def suggested_level(self) -> ReminderLevel:
        return suggested_level(self.days_overdue)

    @property
    def last_reminder(self):
        return self.invoice.reminders[-1] if self.invoice.reminders else None


def severity(days_overdue: int) -> str:
    """mild up to 14 days, moderate up to 30, severe beyond."""
    if days_overdue <= 14:
        return MILD
    if days_overdue <= 30:
        return MODERATE
    return SEVERE


def suggested_level(days_overdue: int) -> ReminderLevel:
    return {
        MILD: ReminderLevel.PAYMENT_REMINDER,
        MODERATE: ReminderLevel.FIRST_NOTICE,
        SEVERE: ReminderLevel.SECOND_NOTICE,
    }[severity(days_overdue)]


def get_overdue_invoices(session, today: date = None) -> List[OverdueInvoice]:
    """
    Sent or overdue invoices whose due date has passed, oldest due date first.

    Args:
        session: SQLAlchemy session
        today: Date to use as reference (defaults to date.today())
    """
    if today is None:
        today = date.today()

    invoices = session.query(Invoice).filter(
        Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.OVERDUE]),
        Invoice.due_date < today
    ).order_by(Invoice.due_date, Invoice.id).all()

    return [OverdueInvoice(invoice=inv, days_overdue=(today - inv.due_date).days) for inv in invoices]


def group_by_severity(overdue: List[OverdueInvoice]) -> Dict[str, List[OverdueInvoice]]:
    groups = OrderedDict((level, []) for level in SEVERITY_LEVELS)
    for entry in overdue:
        groups[entry.severity].append(entry)
    return groups


def summarize(overdue: List[OverdueInvoice]) -> Dict[str, Any]:
    """Counts and open amount for the reminders page header."""
    groups = group_by_severity(overdue)
    return {
        'count': len(overdue),
        'total_amount': round_money(sum((entry.invoice.total for entry in overdue), to_decimal(0))),
        **{f'{level}_count': len(entries) for level, entries in groups.items()},
    }


def create_reminder(session, invoice_id: int, level: Any = None, fee: Any = None,
                    notes: str = None, sent_date: date = None) -> Reminder:
    """
    Record a reminder for an overdue invoice and persist its overdue status.

    Args:
        session: SQLAlchemy session
        invoice_id: Invoice being reminded
        level: 1, 2 or 3 (defaults to the level suggested by days overdue)
        fee: Optional dunning fee
        notes: Optional text added to the letter
        sent_date: Defaults to today

    Raises:
        NotFoundError: Unknown invoice.
        BusinessLogicError: Invoice is not sent/overdue or not yet due.
        ValidationError: Invalid level or fee.
    """
    if sent_date is None:
        sent_date = date.today()

    invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError(f'Invoice {invoice_id} not found')

    if invoice.status not in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE):
        raise BusinessLogicError(
            f'Reminders can only be sent for unpaid invoices (status {invoice.status.value})'
        )
    if invoice.due_date >= sent_date:
        raise BusinessLogicError(f'Invoice {invoice.invoice_number} is not overdue yet')

    if level in (None, ''):
        level = suggested_level((sent_date - invoice.due_date).days)
    try:
        level = ReminderLevel(int(level))
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid reminder level: {level}', field='level')

    try:
        fee_value = round_money(fee) if fee not in (None, '') else None
    except ValueError as e:
        raise ValidationError(str(e), field='fee')
    if fee_value is not None and fee_value < 0:
        raise ValidationError('Fee cannot be negative', field='fee')

    try:
        if invoice.status == InvoiceStatus.SENT:
            check_invoice_transition(invoice.status, InvoiceStatus.OVERDUE)
            invoice.status = InvoiceStatus.OVERDUE

        reminder = Reminder(
            invoice_id=invoice.id,
            level=level.value,
            sent_date=sent_date,
            fee=fee_value,
            notes=(notes or '').strip() or None,
        )
        session.add(reminder)
        session.commit()
        logger.info(f"[REMINDER] {level.label} recorded for {invoice.invoice_number}")
        return reminder
    except Exception:
        session.rollback()
        raise
