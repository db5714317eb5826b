"""Reports blueprint (Berichte) - yearly revenue."""
from datetime import date

from flask import Blueprint, render_template, request

from invoicing.database import get_session
from invoicing.models import InvoiceStatus
from invoicing.services.report_service import get_report_years, get_yearly_report

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')


@reports_bp.route('/')
def yearly_report():
    session = get_session()
    today = date.today()
    year = request.args.get('year', type=int) or today.year

    return render_template(
        'reports/yearly.html',
        report=get_yearly_report(session, year),
        years=get_report_years(session, today),
        statuses=list(InvoiceStatus)
    )
