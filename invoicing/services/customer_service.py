"""Customer service: customer records and delete protection."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from invoicing.exceptions import ConstraintViolationError, NotFoundError, ValidationError
from invoicing.models import Customer, Invoice, Quote

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = (
    'company_name', 'contact_person', 'email', 'phone',
    'address', 'zip_code', 'city', 'country', 'tax_id', 'notes',
)


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key in CUSTOMER_FIELDS:
        if key in data:
            value = data[key]
            if isinstance(value, str):
                value = value.strip() or None
            cleaned[key] = value
    if not cleaned.get('company_name'):
        raise ValidationError('Company name is required', field='company_name')
    return cleaned


def get_customer(session, customer_id: int) -> Customer:
    customer = session.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError(f'Customer {customer_id} not found')
    return customer


def list_customers(session, search: Optional[str] = None) -> List[Customer]:
    """List customers alphabetically, optionally filtered by name, contact, email or city."""
    query = session.query(Customer)
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Customer.company_name).like(pattern),
            func.lower(Customer.contact_person).like(pattern),
            func.lower(Customer.email).like(pattern),
            func.lower(Customer.city).like(pattern),
        ))
    return query.order_by(Customer.company_name).all()


def create_customer(session, data: Dict[str, Any]) -> Customer:
    try:
        customer = Customer(**_clean(data))
        session.add(customer)
        session.commit()
        logger.info(f"[CUSTOMER] Created customer {customer.id} '{customer.company_name}'")
        return customer
    except Exception:
        session.rollback()
        raise


def update_customer(session, customer_id: int, data: Dict[str, Any]) -> Customer:
    customer = get_customer(session, customer_id)
    try:
        for key, value in _clean(data).items():
            setattr(customer, key, value)
        session.commit()
        logger.info(f"[CUSTOMER] Updated customer {customer.id}")
        return customer
    except Exception:
        session.rollback()
        raise


def delete_customer(session, customer_id: int) -> None:
    """
    Delete a customer without documents.

    Raises:
        NotFoundError: Unknown customer.
        ConstraintViolationError: Invoices or quotes still reference the customer.
    """
    customer = get_customer(session, customer_id)

    invoice_count = session.query(func.count(Invoice.id)).filter(Invoice.customer_id == customer.id).scalar()
    quote_count = session.query(func.count(Quote.id)).filter(Quote.customer_id == customer.id).scalar()
    if invoice_count or quote_count:
        raise ConstraintViolationError(
            f"Customer '{customer.company_name}' still has {invoice_count} invoice(s) "
            f"and {quote_count} quote(s) and cannot be deleted",
            {'invoices': invoice_count, 'quotes': quote_count}
        )

    try:
        session.delete(customer)
        session.commit()
        logger.info(f"[CUSTOMER] Deleted customer {customer_id}")
    except IntegrityError as e:
        # A document was added between the check and the delete
        session.rollback()
        raise ConstraintViolationError(
            'Customer is referenced by documents and cannot be deleted'
        ) from e
    except Exception:
        session.rollback()
        raise
