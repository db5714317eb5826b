"""Reminders blueprint (Mahnwesen): overdue invoices and dunning notices."""
from datetime import date

from flask import Blueprint, render_template, request, redirect, url_for, flash

from invoicing.database import get_session
from invoicing.exceptions import BusinessLogicError
from invoicing.models import ReminderLevel
from invoicing.services import reminder_service
from invoicing.services.email_service import send_reminder_email
from invoicing.services.lifecycle_service import mark_overdue_invoices
from invoicing.services.pdf_service import render_invoice_pdf
from invoicing.services.settings_service import get_company_settings
from invoicing.utils.forms import parse_date

reminders_bp = Blueprint('reminders', __name__, url_prefix='/reminders')


@reminders_bp.route('/')
def list_overdue():
    """Overdue invoices grouped by severity."""
    session = get_session()
    today = date.today()
    overdue = reminder_service.get_overdue_invoices(session, today)
    return render_template(
        'reminders/list.html',
        groups=reminder_service.group_by_severity(overdue),
        summary=reminder_service.summarize(overdue),
        levels=list(ReminderLevel),
        today=today
    )


@reminders_bp.route('/<int:invoice_id>', methods=['POST'])
def create_reminder(invoice_id):
    """Record a reminder and optionally email it to the customer."""
    session = get_session()
    try:
        reminder = reminder_service.create_reminder(
            session,
            invoice_id,
            level=request.form.get('level'),
            fee=request.form.get('fee', '').replace(',', '.'),
            notes=request.form.get('notes'),
            sent_date=parse_date(request.form.get('sent_date'), 'sent_date')
        )
    except BusinessLogicError as e:
        flash(e.message, 'danger')
        return redirect(url_for('reminders.list_overdue'))

    invoice = reminder.invoice
    message = f'{reminder.level_label} recorded for invoice {invoice.invoice_number}.'

    if request.form.get('send_email'):
        settings = get_company_settings(session)
        pdf = render_invoice_pdf(invoice, settings).getvalue()
        if send_reminder_email(invoice, reminder, settings, pdf):
            message += ' Email sent.'
        else:
            flash('The reminder email could not be sent.', 'warning')

    flash(message, 'success')
    return redirect(url_for('reminders.list_overdue'))


@reminders_bp.route('/mark-overdue', methods=['POST'])
def run_mark_overdue():
    """Persist the overdue status of every sent invoice past its due date."""
    session = get_session()
    count = mark_overdue_invoices(session, date.today())
    flash(f'{count} invoice(s) marked as overdue.', 'success' if count else 'info')
    return redirect(url_for('reminders.list_overdue'))
