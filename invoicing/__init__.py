"""Flask application factory."""
import logging
import os

from flask import Flask, render_template, request, redirect, flash, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from markupsafe import escape
from werkzeug.exceptions import HTTPException

from invoicing.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize CSRF protection
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        if request.is_json or request.headers.get('HX-Request'):
            return jsonify({'status': 'error', 'message': 'Your session has expired. Please reload the page.'}), 400
        flash('Your session has expired or the form was invalid. Please try again.', 'warning')
        return redirect(request.referrer or '/')

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for payment reminders
    from invoicing.services.email_service import init_mail
    init_mail(app)

    # Production: trust X-Forwarded-* behind the reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Jinja filters for German formatting
    from invoicing.utils.formatters import date_de, datetime_de, money_de, num_de, percent, month_name_de
    app.jinja_env.filters['date_de'] = date_de
    app.jinja_env.filters['datetime_de'] = datetime_de
    app.jinja_env.filters['money_de'] = money_de
    app.jinja_env.filters['num_de'] = num_de
    app.jinja_env.filters['percent'] = percent
    app.jinja_env.filters['month_de'] = month_name_de

    from invoicing.utils.labels import status_color, status_label
    app.jinja_env.filters['status_label'] = status_label
    app.jinja_env.filters['status_color'] = status_color

    # Error Handlers
    from invoicing.exceptions import InvoicingError

    @app.errorhandler(InvoicingError)
    def handle_invoicing_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"InvoicingError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"InvoicingError [{error.status_code}]: {error.message}")

        is_htmx = request.headers.get('HX-Request') == 'true'
        if is_htmx:
            return f'''
            <div class="alert alert-danger alert-dismissible" role="alert">
                {escape(error.message)}
                <button type="button" class="btn-close" onclick="this.parentElement.remove()"></button>
            </div>
            ''', error.status_code

        if request.is_json:
            return jsonify(error.to_dict()), error.status_code

        # Regular requests: flash message and redirect back
        flash(error.message, 'danger')
        return redirect(request.referrer or '/')

    @app.errorhandler(404)
    def not_found_error(error):
        if request.is_json:
            return jsonify({'status': 'error', 'message': 'Not Found'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException) and error.code != 500:
            return error

        app.logger.exception(f"Unhandled Exception: {error}")

        if request.is_json:
            return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

        is_htmx = request.headers.get('HX-Request') == 'true'
        if is_htmx:
            return '<div class="alert alert-danger">Internal server error.</div>', 500

        return render_template('errors/500.html'), 500

    # Company name, logo and overdue badge for the layout
    @app.context_processor
    def inject_company():
        from datetime import date
        from invoicing.database import get_session
        from invoicing.services.settings_service import get_company_settings
        from invoicing.services.reminder_service import get_overdue_invoices

        try:
            db_session = get_session()
            return {
                'company': get_company_settings(db_session),
                'overdue_badge': len(get_overdue_invoices(db_session, date.today())),
            }
        except Exception as e:
            # Error pages must still render when the database is unavailable
            app.logger.warning(f"Error loading layout context: {e}")
            get_session().rollback()
            return {'company': None, 'overdue_badge': 0}

    # Register blueprints
    from invoicing.blueprints.main import main_bp
    from invoicing.blueprints.customers import customers_bp
    from invoicing.blueprints.products import products_bp
    from invoicing.blueprints.invoices import invoices_bp
    from invoicing.blueprints.quotes import quotes_bp
    from invoicing.blueprints.reminders import reminders_bp
    from invoicing.blueprints.reports import reports_bp
    from invoicing.blueprints.settings import settings_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    # CLI commands
    from invoicing.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.debug(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")

    return app
