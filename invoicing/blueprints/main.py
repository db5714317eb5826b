"""Main blueprint: dashboard and health check."""
from datetime import date

from flask import Blueprint, jsonify, render_template, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from invoicing.database import get_session
from invoicing.services.dashboard_service import get_dashboard_stats

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def dashboard():
    """Start page with revenue, open and overdue figures."""
    session = get_session()
    stats = get_dashboard_stats(
        session,
        date.today(),
        recent_limit=current_app.config.get('RECENT_INVOICES_LIMIT', 5)
    )
    return render_template('dashboard.html', stats=stats, today=date.today())


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        session = get_session()
        row = session.execute(text("SELECT 1 as health_check")).fetchone()
        if row and row[0] == 1:
            return jsonify({'status': 'healthy', 'database': 'connected'}), 200
        return jsonify({'status': 'unhealthy', 'database': 'error'}), 500
    except SQLAlchemyError as e:
        current_app.logger.error(f"Health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'database': 'disconnected', 'message': str(e)}), 500
