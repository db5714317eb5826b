"""
Integration tests for overdue tracking, reminders and reminder emails.
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from smtplib import SMTPException

from invoicing.exceptions import BusinessLogicError, NotFoundError, ValidationError
from invoicing.models import Invoice, InvoiceStatus, Reminder, ReminderLevel
from invoicing.services import email_service, lifecycle_service, reminder_service

TODAY = date.today()


@pytest.fixture
def overdue_invoice(make_invoice):
    """Sent invoice 26 days past its due date."""
    return make_invoice(status='sent', issue_date=TODAY - timedelta(days=40))


class TestOverdueList:

    def test_collects_unpaid_invoices_past_due(self, session, make_invoice):
        very_late = make_invoice(status='sent', issue_date=TODAY - timedelta(days=60))
        late = make_invoice(status='sent', issue_date=TODAY - timedelta(days=20))
        stored_overdue = make_invoice(status='sent', issue_date=TODAY - timedelta(days=30))
        lifecycle_service.set_invoice_status(session, stored_overdue, 'overdue')
        paid = make_invoice(status='sent', issue_date=TODAY - timedelta(days=60))
        lifecycle_service.mark_paid(session, paid)
        make_invoice(status='sent')
        make_invoice(issue_date=TODAY - timedelta(days=60))

        overdue = reminder_service.get_overdue_invoices(session, TODAY)

        assert [entry.invoice.id for entry in overdue] == [very_late.id, stored_overdue.id, late.id]
        assert [entry.days_overdue for entry in overdue] == [46, 16, 6]

    def test_grouping_and_summary(self, session, make_invoice):
        make_invoice(status='sent', issue_date=TODAY - timedelta(days=60))
        make_invoice(status='sent', issue_date=TODAY - timedelta(days=20))
        make_invoice(status='sent', issue_date=TODAY - timedelta(days=18))

        overdue = reminder_service.get_overdue_invoices(session, TODAY)
        groups = reminder_service.group_by_severity(overdue)
        summary = reminder_service.summarize(overdue)

        assert list(groups.keys()) == ['mild', 'moderate', 'severe']
        assert [len(entries) for entries in groups.values()] == [2, 0, 1]
        assert summary['count'] == 3
        assert summary['total_amount'] == Decimal('874.50')
        assert summary['mild_count'] == 2
        assert summary['severe_count'] == 1

    def test_empty(self, session):
        assert reminder_service.summarize([]) == {
            'count': 0, 'total_amount': Decimal('0.00'),
            'mild_count': 0, 'moderate_count': 0, 'severe_count': 0,
        }


class TestCreateReminder:

    def test_defaults_to_suggested_level(self, session, overdue_invoice):
        reminder = reminder_service.create_reminder(session, overdue_invoice.id, sent_date=TODAY)

        assert reminder.level == ReminderLevel.FIRST_NOTICE.value
        assert reminder.sent_date == TODAY
        assert reminder.fee is None
        assert session.get(Invoice, overdue_invoice.id).status == InvoiceStatus.OVERDUE

    def test_explicit_level_and_fee(self, session, overdue_invoice):
        reminder = reminder_service.create_reminder(
            session, overdue_invoice.id, level='3', fee='5.00', notes='  Letzte Mahnung  '
        )

        assert reminder.level_label == '2. Mahnung'
        assert reminder.fee == Decimal('5.00')
        assert reminder.notes == 'Letzte Mahnung'
        assert overdue_invoice.reminders[-1].id == reminder.id

    @pytest.mark.parametrize('kwargs', [{'level': 4}, {'level': 'x'}, {'fee': '-1'}, {'fee': 'viel'}])
    def test_invalid_input(self, session, overdue_invoice, kwargs):
        with pytest.raises(ValidationError):
            reminder_service.create_reminder(session, overdue_invoice.id, **kwargs)
        assert session.query(Reminder).count() == 0

    def test_paid_invoice_rejected(self, session, overdue_invoice):
        lifecycle_service.mark_paid(session, overdue_invoice)

        with pytest.raises(BusinessLogicError):
            reminder_service.create_reminder(session, overdue_invoice.id)

    def test_not_yet_due_rejected(self, session, make_invoice):
        invoice = make_invoice(status='sent')

        with pytest.raises(BusinessLogicError):
            reminder_service.create_reminder(session, invoice.id)
        assert invoice.status == InvoiceStatus.SENT

    def test_unknown_invoice(self, session):
        with pytest.raises(NotFoundError):
            reminder_service.create_reminder(session, 404)


class TestReminderEmail:

    def test_reminder_text(self, session, settings, overdue_invoice):
        reminder = reminder_service.create_reminder(session, overdue_invoice.id, level=2, fee='5')

        text = email_service.build_reminder_text(overdue_invoice, reminder, settings)

        assert text.startswith('Sehr geehrte/r Max Beispiel,')
        assert overdue_invoice.invoice_number in text
        assert 'Mahngebühr: 5,00 €' in text
        assert 'Offener Betrag: 296,50 €' in text
        assert 'IBAN DE89370400440532013000, BIC COBADEFFXXX' in text
        assert text.endswith('Erika Muster')

    def test_send_attaches_pdf(self, app, session, settings, overdue_invoice, monkeypatch):
        reminder = reminder_service.create_reminder(session, overdue_invoice.id)
        sent = []
        monkeypatch.setattr(email_service, '_mail_enabled', lambda: True)
        monkeypatch.setattr(email_service.mail, 'send', sent.append)

        with app.app_context():
            assert email_service.send_reminder_email(overdue_invoice, reminder, settings, b'%PDF-1.4') is True
            message = sent[0]
            number = overdue_invoice.invoice_number
            customer_email = overdue_invoice.customer.email

        assert message.subject == f'1. Mahnung: Rechnung {number}'
        assert message.recipients == [customer_email]
        assert message.attachments[0].filename == f'{number}.pdf'

    def test_send_failure_returns_false(self, app, session, settings, overdue_invoice, monkeypatch):
        reminder = reminder_service.create_reminder(session, overdue_invoice.id)

        def failing_send(message):
            raise SMTPException('connection refused')

        monkeypatch.setattr(email_service, '_mail_enabled', lambda: True)
        monkeypatch.setattr(email_service.mail, 'send', failing_send)

        with app.app_context():
            assert email_service.send_reminder_email(overdue_invoice, reminder, settings) is False

    def test_customer_without_email(self, app, session, settings, overdue_invoice):
        reminder = reminder_service.create_reminder(session, overdue_invoice.id)
        overdue_invoice.customer.email = None
        session.commit()

        with app.app_context():
            assert email_service.send_reminder_email(overdue_invoice, reminder, settings) is False

    def test_disabled_mail_counts_as_sent(self, app, session, settings, overdue_invoice):
        reminder = reminder_service.create_reminder(session, overdue_invoice.id)

        with app.app_context():
            assert email_service.send_reminder_email(overdue_invoice, reminder, settings) is True
