"""
Integration tests for sequential document numbers.
"""
import pytest
from datetime import date

from sqlalchemy import update

from invoicing.exceptions import NumberingConflictError, ValidationError
from invoicing.models import CompanySettings
from invoicing.services import numbering_service
from invoicing.services.numbering_service import (
    INVOICE, QUOTE, format_document_number, peek_document_number, reserve_document_number
)


def _counter(session, attr='next_invoice_number'):
    return session.query(getattr(CompanySettings, attr)).scalar()


def test_format_document_number():
    assert format_document_number('RE-', 2026, 7) == 'RE-2026-007'
    assert format_document_number('RE-', 2026, 1234) == 'RE-2026-1234'
    assert format_document_number(None, 2026, 1) == '2026-001'


def test_invoices_are_numbered_sequentially(make_invoice):
    year = date.today().year

    first = make_invoice()
    second = make_invoice()

    assert first.invoice_number == f'RE-{year}-001'
    assert second.invoice_number == f'RE-{year}-002'


def test_quotes_use_their_own_counter(make_invoice, make_quote):
    year = date.today().year

    make_invoice()
    quote = make_quote()

    assert quote.quote_number == f'AN-{year}-001'


def test_prefix_and_counter_come_from_settings(session, settings, make_invoice):
    settings.invoice_prefix = 'INV-'
    settings.next_invoice_number = 42
    session.commit()

    invoice = make_invoice()

    assert invoice.invoice_number == f'INV-{date.today().year}-042'
    assert _counter(session) == 43


def test_backdated_documents_are_numbered_in_the_current_year(session, make_invoice, make_quote):
    year = date.today().year

    invoice = make_invoice(issue_date=date(2020, 6, 1))
    quote = make_quote(issue_date=date(2020, 6, 1))

    assert invoice.issue_date == date(2020, 6, 1)
    assert invoice.invoice_number == f'RE-{year}-001'
    assert quote.quote_number == f'AN-{year}-001'


def test_peek_does_not_reserve(session, settings):
    number = peek_document_number(QUOTE, settings, date(2026, 2, 1))

    assert number == 'AN-2026-001'
    assert _counter(session, 'next_quote_number') == 1


def test_failed_creation_does_not_consume_number(session, settings, make_invoice):
    with pytest.raises(ValidationError):
        make_invoice(items=[{'description': '', 'unit_price': '10'}])

    assert _counter(session) == 1
    assert make_invoice().invoice_number.endswith('-001')


def test_concurrent_reservation_retries_with_fresh_counter(session, settings, monkeypatch):
    """Another request takes the number between read and update; we must not reuse it."""
    real_read = numbering_service._read_counter
    seen = []

    def racing_read(session_, settings_id, counter_attr):
        value = real_read(session_, settings_id, counter_attr)
        if not seen:
            session_.execute(
                update(CompanySettings)
                .where(CompanySettings.id == settings_id)
                .values({counter_attr: value + 1})
            )
        seen.append(value)
        return value

    monkeypatch.setattr(numbering_service, '_read_counter', racing_read)

    number = reserve_document_number(session, INVOICE, settings, date(2026, 1, 5))
    session.commit()

    assert seen == [1, 2]
    assert number == 'RE-2026-002'
    assert _counter(session) == 3


def test_gives_up_after_repeated_conflicts(session, settings, monkeypatch):
    attempts = []

    def stale_read(session_, settings_id, counter_attr):
        attempts.append(counter_attr)
        return 0

    monkeypatch.setattr(numbering_service, '_read_counter', stale_read)

    with pytest.raises(NumberingConflictError) as exc:
        reserve_document_number(session, INVOICE, settings, date(2026, 1, 5))
    session.rollback()

    assert len(attempts) == numbering_service.MAX_RESERVE_ATTEMPTS
    assert exc.value.status_code == 500
    assert _counter(session) == 1


def test_unknown_kind(session, settings):
    with pytest.raises(ValueError):
        reserve_document_number(session, 'credit_note', settings)
