from flask import Blueprint, render_template, redirect, url_for, flash, request
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from forms.auth_forms import AddUserForm, EditProfileForm
from logging_config import get_logger
from models import db
from models.user import Profile, ROLE_LABELS
from routes.auth import admin_required

logger = get_logger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/dashboard/admin')


@admin_bp.route('/users')
@login_required
@admin_required
def list_users():
    q = request.args.get('q', '').strip()
    users = Profile.query
    if q:
        roles = [role for role, label in ROLE_LABELS.items() if q.lower() in label.lower() or q.lower() in role]
        filters = [Profile.full_name.ilike(f'%{q}%'), Profile.email.ilike(f'%{q}%')]
        if roles:
            filters.append(Profile.role.in_(roles))
        users = users.filter(db.or_(*filters))
    users = users.order_by(Profile.created_at.desc()).all()
    return render_template('admin/users.html', title='Manage Users', users=users, q=q)


@admin_bp.route('/users/add', methods=['GET', 'POST'])
@login_required
@admin_required
def add_user():
    form = AddUserForm()
    if form.validate_on_submit():
        email = form.email.data.strip().lower()
        if Profile.query.filter_by(email=email).first():
            flash('A user with this email already exists', 'danger')
        else:
            user = Profile(email=email, full_name=form.full_name.data.strip(), role=form.role.data)
            user.set_password(form.password.data)
            try:
                db.session.add(user)
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception('Could not create user %s', email)
                flash('Could not create user', 'danger')
            else:
                logger.info('User %s (%s) created by %s', email, user.role, current_user.email)
                flash('User created successfully', 'success')
                return redirect(url_for('admin.list_users'))
    return render_template('admin/add_user.html', title='Add User', form=form)


@admin_bp.route('/users/edit/<int:user_id>', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_user(user_id):
    user = db.get_or_404(Profile, user_id)
    form = EditProfileForm(obj=user)
    if form.validate_on_submit():
        if user.id == current_user.id and (form.role.data != user.role or not form.is_active.data):
            flash('You cannot change your own role or deactivate yourself!', 'danger')
            return redirect(url_for('admin.list_users'))
        user.full_name = (form.full_name.data or '').strip() or None
        user.role = form.role.data
        user.is_active = form.is_active.data
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not update user %s', user_id)
            flash('Could not update user', 'danger')
        else:
            logger.info('User %s updated by %s: role=%s active=%s', user.email, current_user.email,
                        user.role, user.is_active)
            flash('User updated successfully', 'success')
            return redirect(url_for('admin.list_users'))
    return render_template('admin/edit_user.html', title='Edit User', form=form, user=user)


@admin_bp.route('/users/toggle_active/<int:user_id>', methods=['POST'])
@login_required
@admin_required
def toggle_active(user_id):
    user = db.get_or_404(Profile, user_id)
    if user.id == current_user.id:
        flash('You cannot deactivate yourself!', 'danger')
        return redirect(url_for('admin.list_users'))
    try:
        user.is_active = not user.is_active
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not change status of user %s', user_id)
        flash('Could not update user', 'danger')
    else:
        logger.info('User %s %s by %s', user.email, 'activated' if user.is_active else 'deactivated',
                    current_user.email)
        flash('User activated' if user.is_active else 'User deactivated', 'success')
    return redirect(url_for('admin.list_users'))
