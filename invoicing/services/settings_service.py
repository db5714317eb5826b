"""Company settings service (singleton record)."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError

from invoicing.exceptions import ValidationError
from invoicing.models import CompanySettings

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = 'Meine Firma'

ALLOWED_FIELDS = (
    'company_name', 'owner_name', 'address', 'zip_code', 'city', 'country',
    'email', 'phone', 'website', 'tax_id', 'vat_id',
    'bank_name', 'iban', 'bic', 'logo_url',
    'invoice_prefix', 'next_invoice_number', 'quote_prefix', 'next_quote_number',
    'default_payment_terms', 'default_tax_rate', 'footer_text', 'is_small_business',
)

_INT_FIELDS = ('next_invoice_number', 'next_quote_number', 'default_payment_terms')


def get_company_settings(session) -> CompanySettings:
    """
    Get the singleton settings row, creating it with defaults when absent.

    Args:
        session: SQLAlchemy session

    Returns:
        CompanySettings instance
    """
    settings = session.query(CompanySettings).order_by(CompanySettings.id).first()
    if settings:
        return settings

    try:
        settings = CompanySettings(company_name=DEFAULT_COMPANY_NAME)
        session.add(settings)
        session.commit()
        logger.info("[SETTINGS] Default company settings created")
        return settings
    except IntegrityError:
        # Another request created it simultaneously
        session.rollback()
        return session.query(CompanySettings).order_by(CompanySettings.id).first()


def _coerce(key: str, value: Any) -> Any:
    if key in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'{key} must be a whole number', field=key)
    if key == 'default_tax_rate':
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError('Default tax rate must be a number', field=key)
    if key == 'is_small_business':
        if isinstance(value, str):
            return value.lower() in ('1', 'true', 'on', 'yes')
        return bool(value)
    if isinstance(value, str):
        return value.strip() or None
    return value


def update_company_settings(session, data: Dict[str, Any]) -> CompanySettings:
    """
    Update the settings row with the allowed fields present in ``data``.

    Unknown keys and None values are ignored. Numbering counters may be
    raised (e.g. when migrating from another system) but never lowered.

    Raises:
        ValidationError: For invalid values or a counter moved backwards.
    """
    settings = get_company_settings(session)

    try:
        for key in ALLOWED_FIELDS:
            if key not in data or data[key] is None:
                continue
            value = _coerce(key, data[key])

            if key in ('next_invoice_number', 'next_quote_number'):
                current = getattr(settings, key)
                if value < current:
                    raise ValidationError(
                        f'{key} cannot be lowered (currently {current})', field=key
                    )
            if key == 'company_name' and not value:
                raise ValidationError('Company name is required', field=key)
            if key == 'default_payment_terms' and value < 0:
                raise ValidationError('Payment terms cannot be negative', field=key)
            if key in ('invoice_prefix', 'quote_prefix') and value is None:
                value = ''

            setattr(settings, key, value)

        session.commit()
        logger.info("[SETTINGS] Company settings updated")
        return settings
    except Exception:
        session.rollback()
        raise
