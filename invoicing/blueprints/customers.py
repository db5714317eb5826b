"""Customers blueprint (Kunden)."""
from typing import Any, Dict

from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app

from invoicing.database import get_session
from invoicing.exceptions import ConstraintViolationError
from invoicing.services import customer_service
from invoicing.services.customer_service import CUSTOMER_FIELDS

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


def _get_customer_data_from_form() -> Dict[str, Any]:
    """Extract customer fields from request.form."""
    return {key: request.form.get(key, '') for key in CUSTOMER_FIELDS}


@customers_bp.route('/')
def list_customers():
    session = get_session()
    search_query = request.args.get('q', '').strip()
    customers = customer_service.list_customers(session, search_query or None)

    is_htmx = request.headers.get('HX-Request') == 'true'
    template = 'customers/_list_table.html' if is_htmx else 'customers/list.html'
    return render_template(template, customers=customers, search_query=search_query)


@customers_bp.route('/new', methods=['GET'])
def new_customer():
    return render_template('customers/form.html', customer=None)


@customers_bp.route('/new', methods=['POST'])
def create_customer():
    session = get_session()
    customer = customer_service.create_customer(session, _get_customer_data_from_form())
    flash(f'Customer "{customer.company_name}" created.', 'success')
    return redirect(url_for('customers.view_customer', customer_id=customer.id))


@customers_bp.route('/<int:customer_id>')
def view_customer(customer_id):
    """Customer detail with their invoices and quotes."""
    session = get_session()
    customer = customer_service.get_customer(session, customer_id)
    invoices = sorted(customer.invoices, key=lambda inv: (inv.issue_date, inv.id), reverse=True)
    quotes = sorted(customer.quotes, key=lambda q: (q.issue_date, q.id), reverse=True)
    return render_template('customers/detail.html', customer=customer, invoices=invoices, quotes=quotes)


@customers_bp.route('/<int:customer_id>/edit', methods=['GET'])
def edit_customer(customer_id):
    session = get_session()
    customer = customer_service.get_customer(session, customer_id)
    return render_template('customers/form.html', customer=customer)


@customers_bp.route('/<int:customer_id>/edit', methods=['POST'])
def update_customer(customer_id):
    session = get_session()
    customer = customer_service.update_customer(session, customer_id, _get_customer_data_from_form())
    flash('Customer updated.', 'success')
    return redirect(url_for('customers.view_customer', customer_id=customer.id))


@customers_bp.route('/<int:customer_id>/delete', methods=['POST'])
def delete_customer(customer_id):
    session = get_session()
    try:
        customer_service.delete_customer(session, customer_id)
    except ConstraintViolationError as e:
        current_app.logger.info(f"Customer {customer_id} not deleted: {e.message}")
        flash(e.message, 'danger')
        return redirect(url_for('customers.view_customer', customer_id=customer_id))

    flash('Customer deleted.', 'success')
    return redirect(url_for('customers.list_customers'))
