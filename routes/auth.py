from functools import wraps

from flask import Blueprint, current_app, render_template, redirect, url_for, flash, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from forms.auth_forms import LoginForm
from logging_config import get_logger
from models.user import Profile

logger = get_logger(__name__)

auth_bp = Blueprint('auth', __name__)

# roles allowed to open each dashboard section
SECTION_ROLES = {
    'customers': ('admin', 'empties_manager', 'sales_manager', 'cashier', 'auditor'),
    'crates': ('admin', 'empties_manager', 'operations_manager', 'auditor'),
    'warehouse': ('admin', 'operations_manager', 'auditor'),
    'pos': ('admin', 'sales_manager', 'cashier', 'auditor'),
    'reports': ('admin', 'sales_manager', 'auditor'),
    'admin': ('admin',),
}


def wants_json():
    return request.is_json or '/api/' in request.path


def _deny(message):
    if wants_json():
        return jsonify({'success': False, 'message': message}), 403
    flash(message, 'danger')
    return redirect(url_for('dashboard'))


def roles_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()
            if not current_user.has_role(*roles):
                logger.warning('%s (%s) denied access to %s', current_user.email, current_user.role, request.path)
                return _deny('You do not have permission to access this page')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def section_required(section):
    return roles_required(*SECTION_ROLES[section])


def editor_required(f):
    """Auditors may look but not change anything."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        if not current_user.can_edit():
            return _deny('Auditors have read-only access')
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    return roles_required('admin')(f)


def visible_sections(user):
    if not user.is_authenticated:
        return []
    return [section for section, roles in SECTION_ROLES.items() if user.role in roles]


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('dashboard'))
    form = LoginForm()
    if form.validate_on_submit():
        email = form.email.data.strip().lower()
        user = Profile.query.filter_by(email=email).first()
        if user and user.check_password(form.password.data):
            if not user.is_active:
                flash('Your account has been deactivated', 'danger')
                return render_template('auth/login.html', title='Sign in', form=form)
            login_user(user)
            logger.info('User %s signed in', user.email)
            next_page = request.args.get('next')
            if next_page and next_page.startswith('/') and not next_page.startswith('//'):
                return redirect(next_page)
            return redirect(url_for('dashboard'))
        logger.warning('Failed sign in for %s', email)
        flash('Invalid email or password', 'danger')
    return render_template('auth/login.html', title='Sign in', form=form)


@auth_bp.route('/logout')
@login_required
def logout():
    logger.info('User %s signed out', current_user.email)
    logout_user()
    flash('You have been signed out', 'success')
    return redirect(url_for('auth.login'))
