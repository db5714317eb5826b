"""
Integration tests for invoice creation, editing, deletion and listing.
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from invoicing.exceptions import BusinessLogicError, NotFoundError, ValidationError
from invoicing.models import Invoice, InvoiceItem, InvoiceStatus
from invoicing.services import invoice_service
from invoicing.services.calculation_service import calculate_document_totals


class TestCreateInvoice:

    def test_totals_are_computed_and_rounded(self, make_invoice):
        invoice = make_invoice()

        assert invoice.subtotal == Decimal('250.00')
        assert invoice.tax_amount == Decimal('41.50')
        assert invoice.total == Decimal('291.50')
        assert invoice.status == InvoiceStatus.DRAFT
        assert [item.position for item in invoice.items] == [0, 1]
        assert invoice.items[0].total == Decimal('200.00')

    def test_small_business_invoice_has_no_tax(self, small_business_settings, make_invoice):
        invoice = make_invoice()

        assert invoice.subtotal == Decimal('250.00')
        assert invoice.tax_amount == Decimal('0.00')
        assert invoice.total == Decimal('250.00')
        # Rates stay on the items, they are just not applied
        assert invoice.items[0].tax_rate == Decimal('19')

    def test_sub_cent_prices_are_stored_at_cent_scale(self, session, make_invoice):
        invoice = make_invoice(items=[
            {'description': 'Schrauben', 'quantity': '3', 'unit_price': '0.333', 'tax_rate': '19'},
            {'description': 'Kabel', 'quantity': '1.2345', 'unit_price': '10', 'tax_rate': '19'},
        ])
        invoice_id = invoice.id
        session.expire_all()

        invoice = session.get(Invoice, invoice_id)

        assert [item.unit_price for item in invoice.items] == [Decimal('0.33'), Decimal('10.00')]
        assert [item.quantity for item in invoice.items] == [Decimal('3.000'), Decimal('1.235')]
        assert invoice.subtotal == sum(item.quantity * item.unit_price for item in invoice.items)
        assert invoice.subtotal == sum(item.total for item in invoice.items) == Decimal('13.34')
        assert invoice.tax_amount == Decimal('2.53')
        assert invoice.total == Decimal('15.87')

    def test_tax_regime_is_kept_when_settings_change(self, session, settings, make_invoice):
        invoice = make_invoice()
        settings.is_small_business = True
        session.commit()

        totals = calculate_document_totals(invoice)

        assert invoice.is_small_business is False
        assert totals.tax_groups == {Decimal('7'): Decimal('3.50'), Decimal('19'): Decimal('38.00')}
        assert sum(totals.tax_groups.values()) == invoice.tax_amount

    def test_small_business_regime_is_kept_when_settings_change(self, session, small_business_settings, make_invoice):
        invoice = make_invoice()
        small_business_settings.is_small_business = False
        session.commit()

        totals = calculate_document_totals(invoice)

        assert invoice.is_small_business is True
        assert totals.tax_groups == {}
        assert totals.total == invoice.total == Decimal('250.00')

    def test_due_date_defaults_to_payment_terms(self, session, settings, customer, standard_items):
        settings.default_payment_terms = 30
        session.commit()

        invoice = invoice_service.create_invoice(session, {
            'customer_id': customer.id,
            'issue_date': date(2026, 3, 1),
        }, standard_items, settings)

        assert invoice.due_date == date(2026, 3, 31)

    def test_created_as_sent(self, make_invoice):
        invoice = make_invoice(status='sent')

        assert invoice.status == InvoiceStatus.SENT
        assert invoice.is_editable is False

    def test_missing_tax_rate_uses_default(self, make_invoice):
        invoice = make_invoice(items=[{'description': 'Pauschale', 'unit_price': '100'}])

        assert invoice.items[0].tax_rate == Decimal('19')
        assert invoice.items[0].unit == 'Stück'
        assert invoice.total == Decimal('119.00')

    def test_requires_customer(self, session, settings, standard_items):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(session, {}, standard_items, settings)
        assert exc.value.field == 'customer_id'

    def test_unknown_customer(self, session, settings, standard_items):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(session, {'customer_id': 9999}, standard_items, settings)

    def test_requires_items(self, session, settings, customer):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice(session, {'customer_id': customer.id}, [], settings)
        assert exc.value.field == 'items'
        assert session.query(Invoice).count() == 0

    def test_due_date_before_issue_date(self, session, settings, customer, standard_items):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(session, {
                'customer_id': customer.id,
                'issue_date': date(2026, 3, 10),
                'due_date': date(2026, 3, 1),
            }, standard_items, settings)

    def test_item_linked_to_product(self, make_invoice, product):
        invoice = make_invoice(items=[{
            'product_id': product.id, 'description': 'Webdesign', 'quantity': '3',
            'unit_price': '85', 'tax_rate': '19',
        }])

        assert invoice.items[0].product_id == product.id
        assert invoice.total == Decimal('303.45')

    def test_unknown_product(self, make_invoice):
        with pytest.raises(NotFoundError):
            make_invoice(items=[{'product_id': 4711, 'description': 'X', 'unit_price': '1'}])


class TestUpdateInvoice:

    def test_draft_items_are_replaced(self, session, settings, make_invoice):
        invoice = make_invoice()
        invoice_id = invoice.id

        updated = invoice_service.update_invoice(session, invoice_id, {
            'customer_id': invoice.customer_id,
            'issue_date': invoice.issue_date,
            'notes': 'Vielen Dank!',
        }, [{'description': 'Neu', 'quantity': '1', 'unit_price': '10', 'tax_rate': '7'}], settings)

        assert updated.total == Decimal('10.70')
        assert updated.notes == 'Vielen Dank!'
        assert session.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice_id).count() == 1

    def test_sent_invoice_is_locked(self, session, settings, make_invoice, standard_items):
        invoice = make_invoice(status='sent')

        with pytest.raises(BusinessLogicError):
            invoice_service.update_invoice(session, invoice.id, {'customer_id': invoice.customer_id},
                                           standard_items, settings)

        assert invoice.total == Decimal('291.50')


class TestDeleteAndList:

    def test_delete_removes_items(self, session, make_invoice):
        invoice_id = make_invoice().id

        invoice_service.delete_invoice(session, invoice_id)

        assert session.query(Invoice).count() == 0
        assert session.query(InvoiceItem).count() == 0

    def test_delete_unknown(self, session):
        with pytest.raises(NotFoundError):
            invoice_service.delete_invoice(session, 12345)

    def test_status_filter_uses_display_status(self, session, make_invoice):
        today = date.today()
        past_due = make_invoice(status='sent', issue_date=today - timedelta(days=30))
        not_due = make_invoice(status='sent')
        make_invoice()

        overdue = invoice_service.list_invoices(session, status='overdue', today=today)
        sent = invoice_service.list_invoices(session, status='sent', today=today)

        assert [inv.id for inv in overdue] == [past_due.id]
        assert [inv.id for inv in sent] == [not_due.id]

    def test_search_by_customer_and_number(self, session, make_invoice, other_customer):
        mine = make_invoice()
        theirs = make_invoice(customer_id=other_customer.id)

        assert [inv.id for inv in invoice_service.list_invoices(session, search='zweite')] == [theirs.id]
        assert [inv.id for inv in invoice_service.list_invoices(session, search=mine.invoice_number)] == [mine.id]

    def test_newest_first(self, session, make_invoice):
        older = make_invoice(issue_date=date(2026, 1, 10))
        newer = make_invoice(issue_date=date(2026, 2, 10))

        assert [inv.id for inv in invoice_service.list_invoices(session)] == [newer.id, older.id]
