"""
Integration tests for the yearly report and the dashboard figures.
"""
import pytest
from datetime import date
from decimal import Decimal

from invoicing.services import lifecycle_service
from invoicing.services.dashboard_service import get_dashboard_stats, percent_change
from invoicing.services.report_service import conversion_rate, get_report_years, get_yearly_report

BIG_ITEM = [{'description': 'Relaunch', 'quantity': '1', 'unit': 'Pauschal', 'unit_price': '1000', 'tax_rate': '19'}]
SMALL_ITEM = [{'description': 'Wartung', 'quantity': '1', 'unit': 'Monat', 'unit_price': '100', 'tax_rate': '19'}]


def _paid_invoice(session, make_invoice, issue_date, paid_date, **kwargs):
    invoice = make_invoice(status='sent', issue_date=issue_date, **kwargs)
    return lifecycle_service.mark_paid(session, invoice, paid_date)


class TestYearlyReport:

    @pytest.fixture
    def year_2025(self, session, make_invoice, make_quote, other_customer):
        _paid_invoice(session, make_invoice, date(2025, 1, 15), date(2025, 2, 3))
        _paid_invoice(session, make_invoice, date(2025, 5, 5), date(2025, 5, 20),
                      items=BIG_ITEM, customer_id=other_customer.id)
        make_invoice(status='sent', issue_date=date(2025, 6, 1))
        _paid_invoice(session, make_invoice, date(2024, 12, 20), date(2025, 1, 5))

        accepted = make_quote(status='sent', issue_date=date(2025, 3, 1))
        lifecycle_service.set_quote_status(session, accepted, 'accepted')
        make_quote(status='sent', issue_date=date(2025, 4, 1))
        make_quote(issue_date=date(2025, 9, 1))
        return other_customer

    def test_revenue_counts_paid_invoices_of_the_issue_year(self, session, year_2025):
        report = get_yearly_report(session, 2025)

        assert report['invoice_count'] == 3
        assert report['paid_count'] == 2
        assert report['revenue'] == Decimal('1481.50')
        assert report['tax_collected'] == Decimal('231.50')
        assert report['net_revenue'] == Decimal('1250.00')

    def test_monthly_buckets_use_paid_date(self, session, year_2025):
        report = get_yearly_report(session, 2025)
        monthly = report['monthly']

        assert len(monthly) == 12
        assert monthly[0]['revenue'] == Decimal('0.00')
        assert monthly[1] == {'month': 2, 'label': 'Februar', 'revenue': Decimal('291.50'), 'count': 1}
        assert monthly[4]['revenue'] == Decimal('1190.00')
        assert report['max_monthly_revenue'] == Decimal('1190.00')

    def test_top_customers_and_status_breakdown(self, session, year_2025):
        other_customer_id = year_2025.id
        report = get_yearly_report(session, 2025)

        assert [entry['customer'].id for entry in report['top_customers']][0] == other_customer_id
        assert report['top_customers'][0]['revenue'] == Decimal('1190.00')
        assert report['by_status']['paid']['count'] == 2
        assert report['by_status']['sent'] == {'count': 1, 'amount': Decimal('291.50')}
        assert report['by_status']['cancelled']['count'] == 0

    def test_quote_conversion_rate(self, session, year_2025):
        report = get_yearly_report(session, 2025)

        assert report['quote_count'] == 3
        assert report['accepted_quote_count'] == 1
        assert report['conversion_rate'] == '33.3'

    def test_empty_year(self, session):
        report = get_yearly_report(session, 2019)

        assert report['revenue'] == Decimal('0.00')
        assert report['top_customers'] == []
        assert report['max_monthly_revenue'] == Decimal('1')
        assert report['conversion_rate'] == '0'

    def test_report_years(self, session, make_invoice):
        make_invoice(issue_date=date(2024, 6, 1))
        make_invoice(issue_date=date(2024, 7, 1))

        assert get_report_years(session, date(2026, 10, 19)) == [2026, 2024]

    @pytest.mark.parametrize('quotes, accepted, expected', [
        (0, 0, '0'), (4, 1, '25.0'), (3, 2, '66.7'), (2, 2, '100.0'),
    ])
    def test_conversion_rate(self, quotes, accepted, expected):
        assert conversion_rate(quotes, accepted) == expected


class TestDashboard:

    TODAY = date(2026, 3, 15)

    @pytest.fixture
    def march_2026(self, session, make_invoice, make_quote):
        _paid_invoice(session, make_invoice, date(2026, 2, 1), date(2026, 2, 20))
        _paid_invoice(session, make_invoice, date(2026, 3, 1), date(2026, 3, 10), items=SMALL_ITEM)
        make_invoice(status='sent', issue_date=date(2026, 3, 10))
        make_invoice(status='sent', issue_date=date(2026, 2, 10))
        make_invoice(issue_date=date(2026, 3, 12))
        make_quote()
        make_quote(status='sent')
        accepted = make_quote(status='sent')
        lifecycle_service.set_quote_status(session, accepted, 'accepted')

    def test_revenue_figures(self, session, march_2026):
        stats = get_dashboard_stats(session, self.TODAY)

        assert stats['revenue_month'] == Decimal('119.00')
        assert stats['revenue_last_month'] == Decimal('291.50')
        assert stats['revenue_change'] == Decimal('-59.2')
        assert stats['revenue_year'] == Decimal('410.50')

    def test_open_and_overdue(self, session, march_2026):
        stats = get_dashboard_stats(session, self.TODAY)

        assert stats['open_count'] == 1
        assert stats['open_amount'] == Decimal('291.50')
        assert stats['overdue_count'] == 1
        assert stats['overdue_amount'] == Decimal('291.50')
        assert stats['draft_count'] == 1
        assert stats['quotes_pending'] == 2
        assert stats['customer_count'] == 1

    def test_recent_invoices_newest_first(self, session, march_2026):
        stats = get_dashboard_stats(session, self.TODAY, recent_limit=2)

        assert [inv.issue_date for inv in stats['recent_invoices']] == [date(2026, 3, 12), date(2026, 3, 10)]

    def test_empty_database(self, session):
        stats = get_dashboard_stats(session, self.TODAY)

        assert stats['revenue_month'] == Decimal('0.00')
        assert stats['revenue_change'] is None
        assert stats['recent_invoices'] == []

    @pytest.mark.parametrize('current, previous, expected', [
        ('110', '100', Decimal('10.0')),
        ('50', '200', Decimal('-75.0')),
        ('10', '0', None),
    ])
    def test_percent_change(self, current, previous, expected):
        assert percent_change(Decimal(current), Decimal(previous)) == expected
