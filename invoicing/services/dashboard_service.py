"""
Dashboard service.
Provides aggregated figures and recent documents for the start page.
"""
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, and_

from invoicing.models import Customer, Invoice, InvoiceStatus, Quote, QuoteStatus
from invoicing.services.calculation_service import ZERO, round_money

RECENT_INVOICES_LIMIT = 5


def _sum_total(session, *filters) -> Decimal:
    value = session.query(func.coalesce(func.sum(Invoice.total), 0)).filter(*filters).scalar()
    return round_money(Decimal(str(value))) if value else round_money(ZERO)


def _month_bounds(day: date):
    start = day.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month


def percent_change(current: Decimal, previous: Decimal) -> Optional[Decimal]:
    """Change against the previous value in percent (one decimal); None if previous is 0."""
    if not previous:
        return None
    change = (current - previous) * 100 / previous
    return change.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)


def get_dashboard_stats(session, today: date = None, recent_limit: int = RECENT_INVOICES_LIMIT) -> Dict[str, Any]:
    """
    Get all dashboard figures.

    Revenue counts paid invoices by paid date. "Overdue" covers sent
    invoices past their due date as well as stored overdue ones.

    Args:
        session: SQLAlchemy session
        today: Reference date (defaults to date.today())
        recent_limit: Number of recent invoices to return

    Returns:
        dict with keys:
            - revenue_month, revenue_last_month, revenue_change, revenue_year: Decimal
            - open_count, open_amount: sent invoices not yet due
            - overdue_count, overdue_amount
            - draft_count
            - quotes_pending: draft or sent quotes
            - customer_count
            - recent_invoices: list of Invoice
    """
    if today is None:
        today = date.today()

    month_start, next_month_start = _month_bounds(today)
    last_month_start, _ = _month_bounds(month_start - timedelta(days=1))
    year_start = date(today.year, 1, 1)

    paid = Invoice.status == InvoiceStatus.PAID
    revenue_month = _sum_total(session, paid, Invoice.paid_date >= month_start, Invoice.paid_date < next_month_start)
    revenue_last_month = _sum_total(session, paid, Invoice.paid_date >= last_month_start, Invoice.paid_date < month_start)
    revenue_year = _sum_total(session, paid, Invoice.paid_date >= year_start, Invoice.paid_date <= today)

    open_filter = and_(Invoice.status == InvoiceStatus.SENT, Invoice.due_date >= today)
    overdue_filter = or_(
        Invoice.status == InvoiceStatus.OVERDUE,
        and_(Invoice.status == InvoiceStatus.SENT, Invoice.due_date < today)
    )

    open_count = session.query(func.count(Invoice.id)).filter(open_filter).scalar() or 0
    overdue_count = session.query(func.count(Invoice.id)).filter(overdue_filter).scalar() or 0
    draft_count = session.query(func.count(Invoice.id)).filter(Invoice.status == InvoiceStatus.DRAFT).scalar() or 0

    quotes_pending = session.query(func.count(Quote.id)).filter(
        Quote.status.in_([QuoteStatus.DRAFT, QuoteStatus.SENT])
    ).scalar() or 0

    customer_count = session.query(func.count(Customer.id)).scalar() or 0

    recent_invoices = session.query(Invoice).order_by(
        Invoice.issue_date.desc(), Invoice.id.desc()
    ).limit(recent_limit).all()

    return {
        'revenue_month': revenue_month,
        'revenue_last_month': revenue_last_month,
        'revenue_change': percent_change(revenue_month, revenue_last_month),
        'revenue_year': revenue_year,
        'open_count': open_count,
        'open_amount': _sum_total(session, open_filter),
        'overdue_count': overdue_count,
        'overdue_amount': _sum_total(session, overdue_filter),
        'draft_count': draft_count,
        'quotes_pending': quotes_pending,
        'customer_count': customer_count,
        'recent_invoices': recent_invoices,
    }
