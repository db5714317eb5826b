"""Products blueprint (Produkte und Leistungen)."""
from typing import Any, Dict

from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify

from invoicing.database import get_session
from invoicing.exceptions import ValidationError
from invoicing.services import product_service
from invoicing.services.item_service import item_from_product
from invoicing.utils.number_format import parse_de_number

products_bp = Blueprint('products', __name__, url_prefix='/products')


def _get_product_data_from_form() -> Dict[str, Any]:
    try:
        price = parse_de_number(request.form.get('price'))
        tax_rate = parse_de_number(request.form.get('tax_rate'))
    except ValueError as e:
        raise ValidationError(str(e))
    return {
        'name': request.form.get('name', ''),
        'description': request.form.get('description', ''),
        'unit': request.form.get('unit', ''),
        'price': price,
        'tax_rate': tax_rate,
        'category': request.form.get('category', ''),
    }


@products_bp.route('/')
def list_products():
    session = get_session()
    search_query = request.args.get('q', '').strip()
    category = request.args.get('category', '').strip()
    products = product_service.list_products(session, search_query or None, category or None)

    is_htmx = request.headers.get('HX-Request') == 'true'
    template = 'products/_list_table.html' if is_htmx else 'products/list.html'
    return render_template(
        template,
        products=products,
        categories=product_service.list_categories(session),
        search_query=search_query,
        category=category
    )


@products_bp.route('/new', methods=['GET'])
def new_product():
    return render_template('products/form.html', product=None)


@products_bp.route('/new', methods=['POST'])
def create_product():
    session = get_session()
    product = product_service.create_product(session, _get_product_data_from_form())
    flash(f'Product "{product.name}" created.', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/<int:product_id>/edit', methods=['GET'])
def edit_product(product_id):
    session = get_session()
    product = product_service.get_product(session, product_id)
    return render_template('products/form.html', product=product)


@products_bp.route('/<int:product_id>/edit', methods=['POST'])
def update_product(product_id):
    session = get_session()
    product_service.update_product(session, product_id, _get_product_data_from_form())
    flash('Product updated.', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/<int:product_id>/delete', methods=['POST'])
def delete_product(product_id):
    """Soft delete: hides the product from the catalog."""
    session = get_session()
    product = product_service.deactivate_product(session, product_id)
    flash(f'Product "{product.name}" removed from the catalog.', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/<int:product_id>/item')
def product_item(product_id):
    """Line-item snapshot of a product for the document forms (JSON)."""
    session = get_session()
    product = product_service.get_product(session, product_id)
    item = item_from_product(product)
    return jsonify({
        'product_id': item['product_id'],
        'description': item['description'],
        'quantity': str(item['quantity']),
        'unit': item['unit'],
        'unit_price': str(item['unit_price']),
        'tax_rate': str(item['tax_rate']),
    })
