"""
Email service for payment reminders.
Uses Flask-Mail for SMTP integration with UTF-8 support.
"""
import logging
from typing import Optional

from flask import current_app
from flask_mail import Mail, Message

from invoicing.utils.formatters import date_de, money_de

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def build_reminder_text(invoice, reminder, settings) -> str:
    """Plain-text body of a reminder letter."""
    customer = invoice.customer
    greeting = f"Sehr geehrte/r {customer.contact_person}," if customer.contact_person else "Sehr geehrte Damen und Herren,"
    outstanding = invoice.total + (reminder.fee or 0)

    lines = [
        greeting,
        "",
        f"unsere Rechnung {invoice.invoice_number} vom {date_de(invoice.issue_date)} über "
        f"{money_de(invoice.total)} war am {date_de(invoice.due_date)} fällig.",
        "Leider konnten wir bis heute keinen Zahlungseingang feststellen.",
        "",
    ]
    if reminder.fee:
        lines.append(f"Mahngebühr: {money_de(reminder.fee)}")
    lines.append(f"Offener Betrag: {money_de(outstanding)}")
    lines.append("")
    if settings.iban:
        lines.append(f"Bitte überweisen Sie den Betrag auf folgendes Konto: IBAN {settings.iban}"
                     + (f", BIC {settings.bic}" if settings.bic else ""))
        lines.append("")
    if reminder.notes:
        lines.extend([reminder.notes, ""])
    lines.extend(["Mit freundlichen Grüßen", settings.owner_name or settings.company_name])
    return "\n".join(lines)


def send_reminder_email(invoice, reminder, settings, pdf_bytes: Optional[bytes] = None) -> bool:
    """
    Send a reminder for an invoice to the customer's email address.

    Args:
        invoice: Invoice being reminded
        reminder: Reminder record (level, fee, notes)
        settings: CompanySettings of the sender
        pdf_bytes: Optional invoice PDF to attach

    Returns:
        True if sent (or mail is disabled), False if sending failed or the
        customer has no email address.
    """
    to_email = invoice.customer.email if invoice.customer else None
    if not to_email:
        logger.warning(f"[EMAIL] Customer of {invoice.invoice_number} has no email, reminder not sent")
        return False

    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Reminder for {invoice.invoice_number} skipped for {to_email}")
            return True

        subject = f"{reminder.level_label}: Rechnung {invoice.invoice_number}"
        msg = Message(
            subject=subject,
            recipients=[to_email],
            body=build_reminder_text(invoice, reminder, settings),
            reply_to=settings.email or None,
        )
        if pdf_bytes:
            msg.attach(f"{invoice.invoice_number}.pdf", "application/pdf", pdf_bytes)

        mail.send(msg)
        logger.info(f"[EMAIL] Reminder level {reminder.level} for {invoice.invoice_number} sent to {to_email}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send reminder for {invoice.invoice_number}: {e}")
        return False
