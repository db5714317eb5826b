import pytest
from datetime import date, timedelta
from decimal import Decimal
import os
import uuid

# Tests run against in-memory SQLite unless a dedicated test database is given
os.environ['DATABASE_URL'] = os.environ.get('TEST_DATABASE_URL', 'sqlite://')
os.environ['MAIL_SUPPRESS_SEND'] = 'true'

from invoicing import create_app
from invoicing.database import Base, create_all, get_session
from invoicing.models import Customer, Product
from invoicing.services import invoice_service, quote_service
from invoicing.services.settings_service import get_company_settings


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['MAIL_SUPPRESS_SEND'] = True
    with app.app_context():
        create_all()
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session; every table is emptied after the test."""
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()


@pytest.fixture(scope='function')
def settings(session):
    """Company settings with a full profile (standard VAT regime)."""
    settings = get_company_settings(session)
    settings.company_name = 'Muster Design GmbH'
    settings.owner_name = 'Erika Muster'
    settings.address = 'Hauptstraße 1'
    settings.zip_code = '10115'
    settings.city = 'Berlin'
    settings.email = 'info@muster-design.de'
    settings.iban = 'DE89370400440532013000'
    settings.bic = 'COBADEFFXXX'
    settings.tax_id = '12/345/67890'
    session.commit()
    return settings


@pytest.fixture(scope='function')
def small_business_settings(session, settings):
    """Same profile, taxed under the small-business regulation."""
    settings.is_small_business = True
    session.commit()
    return settings


@pytest.fixture(scope='function')
def customer(session):
    """Create test customer."""
    suffix = str(uuid.uuid4())[:8]
    customer = Customer(
        company_name=f'Beispiel AG {suffix}',
        contact_person='Max Beispiel',
        email=f'max-{suffix}@beispiel.de',
        address='Musterweg 5',
        zip_code='80331',
        city='München',
    )
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def other_customer(session):
    customer = Customer(company_name='Zweite GmbH', city='Hamburg')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def product(session):
    """Create test catalog product."""
    product = Product(
        name='Webdesign',
        description='Gestaltung einer Landingpage',
        unit='Stunde',
        price=Decimal('85.00'),
        tax_rate=Decimal('19'),
        category='Design',
        is_active=True,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def standard_items():
    """2 x 100 @ 19% and 1 x 50 @ 7% -> 250 net, 41.50 tax, 291.50 gross."""
    return [
        {'description': 'Beratung', 'quantity': '2', 'unit': 'Stunde', 'unit_price': '100', 'tax_rate': '19'},
        {'description': 'Fachbuch', 'quantity': '1', 'unit': 'Stück', 'unit_price': '50', 'tax_rate': '7'},
    ]


@pytest.fixture
def make_invoice(session, settings, customer, standard_items):
    """Factory creating invoices through the service layer."""
    def _make(status='draft', issue_date=None, due_date=None, items=None, customer_id=None):
        issue_date = issue_date or date.today()
        return invoice_service.create_invoice(session, {
            'customer_id': customer_id or customer.id,
            'issue_date': issue_date,
            'due_date': due_date or issue_date + timedelta(days=14),
            'status': status,
        }, items or standard_items, settings)
    return _make


@pytest.fixture
def make_quote(session, settings, customer, standard_items):
    """Factory creating quotes through the service layer."""
    def _make(status='draft', issue_date=None, valid_until=None, items=None):
        return quote_service.create_quote(session, {
            'customer_id': customer.id,
            'issue_date': issue_date or date.today(),
            'valid_until': valid_until,
            'status': status,
            'notes': 'Angebot gültig für Neukunden',
        }, items or standard_items, settings)
    return _make
