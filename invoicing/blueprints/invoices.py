"""Invoices blueprint (Rechnungen)."""
from datetime import date
from typing import Any, Dict

from flask import Blueprint, render_template, request, redirect, url_for, flash, send_file, current_app

from invoicing.database import get_session
from invoicing.exceptions import BusinessLogicError, ConstraintViolationError
from invoicing.models import InvoiceStatus
from invoicing.services import customer_service, invoice_service, lifecycle_service, product_service
from invoicing.services.calculation_service import calculate_document_totals
from invoicing.services.numbering_service import INVOICE, peek_document_number
from invoicing.services.pdf_service import pdf_filename, render_invoice_pdf
from invoicing.services.settings_service import get_company_settings
from invoicing.utils.forms import parse_date, parse_items
from invoicing.utils.labels import INVOICE_STATUS_LABELS

invoices_bp = Blueprint('invoices', __name__, url_prefix='/invoices')

STATUS_LABELS = INVOICE_STATUS_LABELS


def _get_invoice_data_from_form() -> Dict[str, Any]:
    return {
        'customer_id': request.form.get('customer_id', '').strip() or None,
        'issue_date': parse_date(request.form.get('issue_date'), 'issue_date'),
        'due_date': parse_date(request.form.get('due_date'), 'due_date'),
        'delivery_date': parse_date(request.form.get('delivery_date'), 'delivery_date'),
        'notes': request.form.get('notes', ''),
        'payment_terms': request.form.get('payment_terms', ''),
        'status': InvoiceStatus.SENT.value if request.form.get('action') == 'send' else InvoiceStatus.DRAFT.value,
    }


def _render_form(invoice=None):
    session = get_session()
    settings = get_company_settings(session)
    return render_template(
        'invoices/form.html',
        invoice=invoice,
        customers=customer_service.list_customers(session),
        products=product_service.list_products(session),
        settings=settings,
        next_number=peek_document_number(INVOICE, settings),
        preselected_customer_id=request.args.get('customer_id', type=int),
        today=date.today()
    )


@invoices_bp.route('/')
def list_invoices():
    """List invoices with status filter and search (HTMX partial on filter)."""
    session = get_session()
    status_filter = request.args.get('status', '').strip().lower()
    search = request.args.get('q', '').strip()

    invoices = invoice_service.list_invoices(session, status=status_filter or None, search=search or None)

    is_htmx = request.headers.get('HX-Request') == 'true'
    template = 'invoices/_list_table.html' if is_htmx else 'invoices/list.html'
    return render_template(
        template,
        invoices=invoices,
        status_filter=status_filter,
        search=search,
        status_labels=STATUS_LABELS,
        today=date.today()
    )


@invoices_bp.route('/new', methods=['GET'])
def new_invoice():
    return _render_form()


@invoices_bp.route('/new', methods=['POST'])
def create_invoice():
    session = get_session()
    invoice = invoice_service.create_invoice(session, _get_invoice_data_from_form(), parse_items(request.form))
    flash(f'Invoice {invoice.invoice_number} created.', 'success')
    return redirect(url_for('invoices.view_invoice', invoice_id=invoice.id))


@invoices_bp.route('/<int:invoice_id>')
def view_invoice(invoice_id):
    session = get_session()
    invoice = invoice_service.get_invoice(session, invoice_id)
    settings = get_company_settings(session)
    return render_template(
        'invoices/detail.html',
        invoice=invoice,
        settings=settings,
        totals=calculate_document_totals(invoice),
        display_status=lifecycle_service.display_status(invoice),
        allowed=lifecycle_service.allowed_invoice_transitions(invoice),
        status_labels=STATUS_LABELS,
        today=date.today()
    )


@invoices_bp.route('/<int:invoice_id>/edit', methods=['GET'])
def edit_invoice(invoice_id):
    session = get_session()
    invoice = invoice_service.get_invoice(session, invoice_id)
    if not invoice.is_editable:
        flash(f'Invoice {invoice.invoice_number} is no longer a draft and cannot be edited.', 'warning')
        return redirect(url_for('invoices.view_invoice', invoice_id=invoice_id))
    return _render_form(invoice)


@invoices_bp.route('/<int:invoice_id>/edit', methods=['POST'])
def update_invoice(invoice_id):
    session = get_session()
    data = _get_invoice_data_from_form()
    data.pop('status')
    try:
        invoice = invoice_service.update_invoice(session, invoice_id, data, parse_items(request.form))
    except BusinessLogicError as e:
        flash(e.message, 'danger')
        return redirect(url_for('invoices.edit_invoice', invoice_id=invoice_id))

    flash(f'Invoice {invoice.invoice_number} saved.', 'success')
    return redirect(url_for('invoices.view_invoice', invoice_id=invoice.id))


@invoices_bp.route('/<int:invoice_id>/status', methods=['POST'])
def change_status(invoice_id):
    """Apply a status change requested from the detail page."""
    session = get_session()
    invoice = invoice_service.get_invoice(session, invoice_id)
    new_status = request.form.get('status', '')

    try:
        if new_status == InvoiceStatus.PAID.value:
            lifecycle_service.mark_paid(session, invoice, parse_date(request.form.get('paid_date'), 'paid_date'))
        else:
            lifecycle_service.set_invoice_status(session, invoice, new_status)
    except BusinessLogicError as e:
        flash(e.message, 'danger')
        return redirect(url_for('invoices.view_invoice', invoice_id=invoice_id))

    flash(f'Invoice {invoice.invoice_number} is now "{STATUS_LABELS[invoice.status]}".', 'success')
    return redirect(url_for('invoices.view_invoice', invoice_id=invoice_id))


@invoices_bp.route('/<int:invoice_id>/pay', methods=['POST'])
def mark_paid(invoice_id):
    session = get_session()
    invoice = invoice_service.get_invoice(session, invoice_id)
    try:
        lifecycle_service.mark_paid(session, invoice, parse_date(request.form.get('paid_date'), 'paid_date'))
    except BusinessLogicError as e:
        flash(e.message, 'danger')
        return redirect(url_for('invoices.view_invoice', invoice_id=invoice_id))

    flash(f'Invoice {invoice.invoice_number} marked as paid.', 'success')
    return redirect(url_for('invoices.view_invoice', invoice_id=invoice_id))


@invoices_bp.route('/<int:invoice_id>/delete', methods=['POST'])
def delete_invoice(invoice_id):
    session = get_session()
    try:
        invoice_service.delete_invoice(session, invoice_id)
    except ConstraintViolationError as e:
        flash(e.message, 'danger')
        return redirect(url_for('invoices.view_invoice', invoice_id=invoice_id))

    flash('Invoice deleted.', 'success')
    return redirect(url_for('invoices.list_invoices'))


@invoices_bp.route('/<int:invoice_id>/pdf')
def download_pdf(invoice_id):
    """Generate and download the invoice PDF."""
    session = get_session()
    invoice = invoice_service.get_invoice(session, invoice_id)
    settings = get_company_settings(session)

    pdf_buffer = render_invoice_pdf(invoice, settings)
    current_app.logger.info(f"PDF generated for invoice {invoice.invoice_number}")

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=request.args.get('download') == '1',
        download_name=pdf_filename(invoice)
    )
