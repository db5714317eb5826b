"""Models package - exports all SQLAlchemy models."""
from invoicing.models.customer import Customer
from invoicing.models.product import Product
from invoicing.models.invoice import Invoice, InvoiceStatus
from invoicing.models.invoice_item import InvoiceItem
from invoicing.models.quote import Quote, QuoteStatus
from invoicing.models.quote_item import QuoteItem
from invoicing.models.company_settings import CompanySettings
from invoicing.models.reminder import Reminder, ReminderLevel

__all__ = [
    'Customer', 'Product',
    'Invoice', 'InvoiceStatus', 'InvoiceItem',
    'Quote', 'QuoteStatus', 'QuoteItem',
    'CompanySettings',
    'Reminder', 'ReminderLevel',
]
