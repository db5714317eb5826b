"""
Sequential document numbers (``RE-2026-001``, ``AN-2026-014``).

Counters live on the company settings row. A number is reserved with a
compare-and-swap update, so two requests can never consume the same value:
the update only succeeds if the counter still holds the value that was read.
"""
import logging
from datetime import date

from sqlalchemy import update

from invoicing.exceptions import NumberingConflictError
from invoicing.models import CompanySettings

logger = logging.getLogger(__name__)

INVOICE = 'invoice'
QUOTE = 'quote'

MAX_RESERVE_ATTEMPTS = 5

# kind -> (prefix attribute, counter attribute)
_NUMBERING = {
    INVOICE: ('invoice_prefix', 'next_invoice_number'),
    QUOTE: ('quote_prefix', 'next_quote_number'),
}


def format_document_number(prefix: str, year: int, sequence: int) -> str:
    """Compose ``<prefix><year>-<sequence padded to 3 digits>``."""
    return f"{prefix or ''}{year}-{sequence:03d}"


def _read_counter(session, settings_id, counter_attr: str) -> int:
    column = getattr(CompanySettings, counter_attr)
    return session.query(column).filter(CompanySettings.id == settings_id).scalar()


def reserve_document_number(session, kind: str, settings: CompanySettings, today: date = None) -> str:
    """
    Reserve the next number of a kind and advance the counter.

    Does not commit: the reservation becomes durable together with the
    document that uses it, and is released if that transaction rolls back.

    Args:
        session: SQLAlchemy session
        kind: 'invoice' or 'quote'
        settings: Company settings row holding prefix and counter
        today: Date whose year goes into the number (defaults to date.today())

    Returns:
        The formatted document number

    Raises:
        NumberingConflictError: If the counter kept moving under us.
    """
    if kind not in _NUMBERING:
        raise ValueError(f'Unknown document kind: {kind}')
    if today is None:
        today = date.today()

    prefix_attr, counter_attr = _NUMBERING[kind]
    column = getattr(CompanySettings, counter_attr)

    for attempt in range(1, MAX_RESERVE_ATTEMPTS + 1):
        current = _read_counter(session, settings.id, counter_attr)

        result = session.execute(
            update(CompanySettings)
            .where(CompanySettings.id == settings.id, column == current)
            .values({counter_attr: current + 1})
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 1:
            session.expire(settings, [counter_attr])
            number = format_document_number(getattr(settings, prefix_attr), today.year, current)
            logger.info(f"[NUMBERING] Reserved {kind} number {number}")
            return number

        logger.warning(
            f"[NUMBERING] Counter {counter_attr} changed concurrently "
            f"(attempt {attempt}/{MAX_RESERVE_ATTEMPTS})"
        )

    raise NumberingConflictError(kind, MAX_RESERVE_ATTEMPTS)


def peek_document_number(kind: str, settings: CompanySettings, today: date = None) -> str:
    """Number the next document would get, without reserving it (form preview)."""
    if today is None:
        today = date.today()
    prefix_attr, counter_attr = _NUMBERING[kind]
    return format_document_number(getattr(settings, prefix_attr), today.year, getattr(settings, counter_attr))
