"""Report service - yearly revenue reporting."""
import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List

from invoicing.models import Customer, Invoice, InvoiceStatus, Quote, QuoteStatus
from invoicing.services.calculation_service import ZERO, round_money
from invoicing.utils.formatters import month_name_de

logger = logging.getLogger(__name__)

TOP_CUSTOMER_LIMIT = 5


def get_report_years(session, today: date = None) -> List[int]:
    """Years that have invoices, newest first; always includes the current year."""
    if today is None:
        today = date.today()
    years = {today.year}
    for (issue_date,) in session.query(Invoice.issue_date).distinct().all():
        years.add(issue_date.year)
    return sorted(years, reverse=True)


def conversion_rate(quote_count: int, accepted_count: int) -> str:
    """Accepted share of quotes in percent with one decimal ("0" without quotes)."""
    if not quote_count:
        return '0'
    rate = Decimal(accepted_count) * 100 / Decimal(quote_count)
    return str(rate.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def get_yearly_report(session, year: int) -> Dict[str, Any]:
    """
    Revenue report for one calendar year.

    Invoices count towards the year of their issue date; revenue is the sum
    of paid invoices. Monthly buckets use the paid date, falling back to the
    issue date.

    Args:
        session: SQLAlchemy session
        year: Calendar year

    Returns:
        dict with keys:
            - year, invoice_count, paid_count
            - revenue: Decimal (paid totals)
            - tax_collected: Decimal (paid tax amounts)
            - net_revenue: Decimal (paid subtotals)
            - monthly: list of 12 dicts {month, label, revenue, count}
            - top_customers: up to 5 dicts {customer, revenue, count}
            - by_status: dict status value -> {count, amount}
            - quote_count, accepted_quote_count, conversion_rate
    """
    start = date(year, 1, 1)
    end = date(year, 12, 31)

    year_invoices = session.query(Invoice).filter(
        Invoice.issue_date >= start,
        Invoice.issue_date <= end
    ).order_by(Invoice.issue_date).all()
    paid_invoices = [inv for inv in year_invoices if inv.status == InvoiceStatus.PAID]

    revenue = sum((inv.total for inv in paid_invoices), ZERO)
    tax_collected = sum((inv.tax_amount for inv in paid_invoices), ZERO)
    net_revenue = sum((inv.subtotal for inv in paid_invoices), ZERO)

    monthly = []
    for month in range(1, 13):
        month_invoices = [inv for inv in paid_invoices if (inv.paid_date or inv.issue_date).month == month]
        monthly.append({
            'month': month,
            'label': month_name_de(month),
            'revenue': round_money(sum((inv.total for inv in month_invoices), ZERO)),
            'count': len(month_invoices),
        })

    per_customer = OrderedDict()
    for inv in paid_invoices:
        entry = per_customer.setdefault(inv.customer_id, {'revenue': ZERO, 'count': 0})
        entry['revenue'] += inv.total
        entry['count'] += 1
    ranked = sorted(per_customer.items(), key=lambda item: item[1]['revenue'], reverse=True)
    top_customers = []
    for customer_id, entry in ranked[:TOP_CUSTOMER_LIMIT]:
        if entry['revenue'] <= 0:
            continue
        top_customers.append({
            'customer': session.get(Customer, customer_id),
            'revenue': round_money(entry['revenue']),
            'count': entry['count'],
        })

    by_status = OrderedDict()
    for status in InvoiceStatus:
        matching = [inv for inv in year_invoices if inv.status == status]
        by_status[status.value] = {
            'count': len(matching),
            'amount': round_money(sum((inv.total for inv in matching), ZERO)),
        }

    year_quotes = session.query(Quote).filter(
        Quote.issue_date >= start,
        Quote.issue_date <= end
    ).all()
    accepted_quotes = [q for q in year_quotes if q.status == QuoteStatus.ACCEPTED]

    logger.debug(f"[REPORT] Year {year}: {len(year_invoices)} invoices, {len(paid_invoices)} paid")

    return {
        'year': year,
        'invoice_count': len(year_invoices),
        'paid_count': len(paid_invoices),
        'revenue': round_money(revenue),
        'tax_collected': round_money(tax_collected),
        'net_revenue': round_money(net_revenue),
        'monthly': monthly,
        'max_monthly_revenue': max([m['revenue'] for m in monthly] + [Decimal('1')]),
        'top_customers': top_customers,
        'by_status': by_status,
        'quote_count': len(year_quotes),
        'accepted_quote_count': len(accepted_quotes),
        'conversion_rate': conversion_rate(len(year_quotes), len(accepted_quotes)),
    }
