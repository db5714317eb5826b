"""German display labels for document statuses."""
from invoicing.models import InvoiceStatus, QuoteStatus

INVOICE_STATUS_LABELS = {
    InvoiceStatus.DRAFT: 'Entwurf',
    InvoiceStatus.SENT: 'Versendet',
    InvoiceStatus.PAID: 'Bezahlt',
    InvoiceStatus.OVERDUE: 'Überfällig',
    InvoiceStatus.CANCELLED: 'Storniert',
}

QUOTE_STATUS_LABELS = {
    QuoteStatus.DRAFT: 'Entwurf',
    QuoteStatus.SENT: 'Versendet',
    QuoteStatus.ACCEPTED: 'Angenommen',
    QuoteStatus.REJECTED: 'Abgelehnt',
    QuoteStatus.EXPIRED: 'Abgelaufen',
}

STATUS_COLORS = {
    'draft': 'secondary',
    'sent': 'primary',
    'paid': 'success',
    'overdue': 'danger',
    'cancelled': 'dark',
    'accepted': 'success',
    'rejected': 'danger',
    'expired': 'warning',
}


def status_label(status) -> str:
    """Jinja filter: InvoiceStatus/QuoteStatus -> German label."""
    if status in INVOICE_STATUS_LABELS:
        return INVOICE_STATUS_LABELS[status]
    if status in QUOTE_STATUS_LABELS:
        return QUOTE_STATUS_LABELS[status]
    return getattr(status, 'value', str(status))


def status_color(status) -> str:
    return STATUS_COLORS.get(getattr(status, 'value', status), 'secondary')
