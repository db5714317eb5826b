"""Quotes blueprint (Angebote)."""
from datetime import date
from typing import Any, Dict

from flask import Blueprint, render_template, request, redirect, url_for, flash, send_file, current_app

from invoicing.database import get_session
from invoicing.exceptions import BusinessLogicError, ConstraintViolationError, NotConvertibleError
from invoicing.models import QuoteStatus
from invoicing.services import customer_service, lifecycle_service, product_service, quote_service
from invoicing.services.calculation_service import calculate_document_totals
from invoicing.services.numbering_service import QUOTE, peek_document_number
from invoicing.services.pdf_service import pdf_filename, render_quote_pdf
from invoicing.services.settings_service import get_company_settings
from invoicing.utils.forms import parse_date, parse_items
from invoicing.utils.labels import QUOTE_STATUS_LABELS

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')

STATUS_LABELS = QUOTE_STATUS_LABELS


def _valid_days() -> int:
    return current_app.config.get('QUOTE_VALID_DAYS', quote_service.DEFAULT_VALID_DAYS)


def _get_quote_data_from_form() -> Dict[str, Any]:
    return {
        'customer_id': request.form.get('customer_id', '').strip() or None,
        'issue_date': parse_date(request.form.get('issue_date'), 'issue_date'),
        'valid_until': parse_date(request.form.get('valid_until'), 'valid_until'),
        'notes': request.form.get('notes', ''),
        'status': QuoteStatus.SENT.value if request.form.get('action') == 'send' else QuoteStatus.DRAFT.value,
    }


def _render_form(quote=None):
    session = get_session()
    settings = get_company_settings(session)
    return render_template(
        'quotes/form.html',
        quote=quote,
        customers=customer_service.list_customers(session),
        products=product_service.list_products(session),
        settings=settings,
        next_number=peek_document_number(QUOTE, settings),
        valid_days=_valid_days(),
        preselected_customer_id=request.args.get('customer_id', type=int),
        today=date.today()
    )


@quotes_bp.route('/')
def list_quotes():
    """List quotes with status filter and search."""
    session = get_session()
    status_filter = request.args.get('status', '').strip().lower()
    search = request.args.get('q', '').strip()

    quotes = quote_service.list_quotes(session, status=status_filter or None, search=search or None)

    is_htmx = request.headers.get('HX-Request') == 'true'
    template = 'quotes/_list_table.html' if is_htmx else 'quotes/list.html'
    return render_template(
        template,
        quotes=quotes,
        status_filter=status_filter,
        search=search,
        status_labels=STATUS_LABELS,
        today=date.today()
    )


@quotes_bp.route('/new', methods=['GET'])
def new_quote():
    return _render_form()


@quotes_bp.route('/new', methods=['POST'])
def create_quote():
    session = get_session()
    quote = quote_service.create_quote(
        session, _get_quote_data_from_form(), parse_items(request.form), valid_days=_valid_days()
    )
    flash(f'Quote {quote.quote_number} created.', 'success')
    return redirect(url_for('quotes.view_quote', quote_id=quote.id))


@quotes_bp.route('/<int:quote_id>')
def view_quote(quote_id):
    session = get_session()
    quote = quote_service.get_quote(session, quote_id)
    settings = get_company_settings(session)
    return render_template(
        'quotes/detail.html',
        quote=quote,
        settings=settings,
        totals=calculate_document_totals(quote),
        display_status=lifecycle_service.display_quote_status(quote),
        allowed=lifecycle_service.allowed_quote_transitions(quote),
        status_labels=STATUS_LABELS,
        today=date.today()
    )


@quotes_bp.route('/<int:quote_id>/edit', methods=['GET'])
def edit_quote(quote_id):
    session = get_session()
    quote = quote_service.get_quote(session, quote_id)
    if not quote.is_editable:
        flash(f'Quote {quote.quote_number} is no longer a draft and cannot be edited.', 'warning')
        return redirect(url_for('quotes.view_quote', quote_id=quote_id))
    return _render_form(quote)


@quotes_bp.route('/<int:quote_id>/edit', methods=['POST'])
def update_quote(quote_id):
    session = get_session()
    data = _get_quote_data_from_form()
    data.pop('status')
    try:
        quote = quote_service.update_quote(
            session, quote_id, data, parse_items(request.form), valid_days=_valid_days()
        )
    except BusinessLogicError as e:
        flash(e.message, 'danger')
        return redirect(url_for('quotes.edit_quote', quote_id=quote_id))

    flash(f'Quote {quote.quote_number} saved.', 'success')
    return redirect(url_for('quotes.view_quote', quote_id=quote.id))


@quotes_bp.route('/<int:quote_id>/status', methods=['POST'])
def change_status(quote_id):
    session = get_session()
    quote = quote_service.get_quote(session, quote_id)
    try:
        lifecycle_service.set_quote_status(session, quote, request.form.get('status', ''))
    except BusinessLogicError as e:
        flash(e.message, 'danger')
        return redirect(url_for('quotes.view_quote', quote_id=quote_id))

    flash(f'Quote {quote.quote_number} is now "{STATUS_LABELS[quote.status]}".', 'success')
    return redirect(url_for('quotes.view_quote', quote_id=quote_id))


@quotes_bp.route('/<int:quote_id>/convert', methods=['POST'])
def convert_to_invoice(quote_id):
    """Convert quote to a draft invoice."""
    session = get_session()
    settings = get_company_settings(session)
    try:
        invoice = lifecycle_service.convert_quote_to_invoice(session, quote_id, settings)
    except NotConvertibleError as e:
        flash(e.message, 'danger')
        return redirect(url_for('quotes.view_quote', quote_id=quote_id))

    flash(f'Invoice {invoice.invoice_number} created from the quote.', 'success')
    return redirect(url_for('invoices.view_invoice', invoice_id=invoice.id))


@quotes_bp.route('/<int:quote_id>/delete', methods=['POST'])
def delete_quote(quote_id):
    session = get_session()
    try:
        quote_service.delete_quote(session, quote_id)
    except ConstraintViolationError as e:
        flash(e.message, 'danger')
        return redirect(url_for('quotes.view_quote', quote_id=quote_id))

    flash('Quote deleted.', 'success')
    return redirect(url_for('quotes.list_quotes'))


@quotes_bp.route('/<int:quote_id>/pdf')
def download_pdf(quote_id):
    session = get_session()
    quote = quote_service.get_quote(session, quote_id)
    settings = get_company_settings(session)

    pdf_buffer = render_quote_pdf(quote, settings)
    current_app.logger.info(f"PDF generated for quote {quote.quote_number}")

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=request.args.get('download') == '1',
        download_name=pdf_filename(quote)
    )
