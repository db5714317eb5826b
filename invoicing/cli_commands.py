"""
Flask CLI commands for database setup and maintenance.

Commands:
- flask init-db: Create all tables
- flask mark-overdue: Persist overdue status of sent invoices past due
- flask seed-settings: Create the company settings row
"""
from datetime import date

import click

from invoicing.database import create_all, db_session
from invoicing.services.lifecycle_service import mark_overdue_invoices
from invoicing.services.numbering_service import INVOICE, QUOTE, peek_document_number
from invoicing.services.settings_service import get_company_settings, update_company_settings


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('mark-overdue')
    @click.option('--date', 'reference_date', type=click.DateTime(formats=['%Y-%m-%d']),
                  default=None, help='Reference date (YYYY-MM-DD), defaults to today')
    def mark_overdue_command(reference_date):
        """Mark sent invoices past their due date as overdue."""
        today = reference_date.date() if reference_date else date.today()
        count = mark_overdue_invoices(db_session, today)
        click.echo(f'{count} invoice(s) marked as overdue as of {today.isoformat()}.')

    @app.cli.command('seed-settings')
    @click.option('--company-name', default=None, help='Company name')
    @click.option('--small-business/--no-small-business', default=None,
                  help='Small business (no VAT, section 19 UStG)')
    def seed_settings_command(company_name, small_business):
        """Create the company settings row (and optionally set name / tax regime)."""
        settings = get_company_settings(db_session)
        data = {}
        if company_name:
            data['company_name'] = company_name
        if small_business is not None:
            data['is_small_business'] = small_business
        if data:
            settings = update_company_settings(db_session, data)

        click.echo(click.style(f'Company settings ready: {settings.company_name}', fg='green'))
        click.echo(f'   Next invoice: {peek_document_number(INVOICE, settings)}')
        click.echo(f'   Next quote:   {peek_document_number(QUOTE, settings)}')
