"""
Settings blueprint for the company profile (Einstellungen):
identity, bank details, numbering, tax regime and logo.
"""
from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app
from botocore.exceptions import BotoCoreError, ClientError

from invoicing.database import get_session
from invoicing.exceptions import ValidationError
from invoicing.services.settings_service import ALLOWED_FIELDS, get_company_settings, update_company_settings
from invoicing.services.storage_service import upload_logo
from invoicing.utils.number_format import parse_de_number

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')


@settings_bp.route('/', methods=['GET'])
def edit_settings():
    session = get_session()
    return render_template('settings/form.html', settings=get_company_settings(session))


@settings_bp.route('/', methods=['POST'])
def save_settings():
    session = get_session()

    data = {key: request.form.get(key) for key in ALLOWED_FIELDS if key in request.form}
    data.pop('logo_url', None)
    # Unchecked checkboxes are not submitted
    data['is_small_business'] = bool(request.form.get('is_small_business'))
    if data.get('default_tax_rate'):
        try:
            data['default_tax_rate'] = parse_de_number(data['default_tax_rate'])
        except ValueError as e:
            raise ValidationError(str(e), field='default_tax_rate')

    try:
        update_company_settings(session, data)
    except ValidationError as e:
        flash(e.message, 'danger')
        return redirect(url_for('settings.edit_settings'))

    flash('Settings saved.', 'success')
    return redirect(url_for('settings.edit_settings'))


@settings_bp.route('/logo', methods=['POST'])
def save_logo():
    """Upload a new company logo to object storage."""
    session = get_session()
    settings = get_company_settings(session)

    file = request.files.get('logo')
    try:
        url = upload_logo(file, previous_url=settings.logo_url)
    except ValidationError as e:
        flash(e.message, 'danger')
        return redirect(url_for('settings.edit_settings'))
    except (BotoCoreError, ClientError) as e:
        current_app.logger.error(f"[STORAGE] Logo upload failed: {e}")
        flash('The logo could not be uploaded. Please try again later.', 'danger')
        return redirect(url_for('settings.edit_settings'))

    update_company_settings(session, {'logo_url': url})
    flash('Logo updated.', 'success')
    return redirect(url_for('settings.edit_settings'))
