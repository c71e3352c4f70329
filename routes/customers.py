from io import BytesIO
from zipfile import BadZipFile

import pandas as pd
from flask import Blueprint, render_template, redirect, url_for, flash, request, send_file
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from errors import ValidationFailed
from forms.customer_forms import CustomerForm, AddCustomerForm, CustomerImportForm
from forms.item_forms import CustomerReturnEmptiesForm
from logging_config import get_logger
from models import db
from models.customer import Customer, CustomerType
from models.empties import EmptiesLog
from models.product import Product
from routes.auth import section_required, editor_required

logger = get_logger(__name__)

customers_bp = Blueprint('customers', __name__, url_prefix='/dashboard/customers')


def type_choices():
    return [(t.id, t.name) for t in CustomerType.query.order_by(CustomerType.id).all()]


@customers_bp.route('/')
@login_required
@section_required('customers')
def list_customers():
    q = request.args.get('q', '').strip()
    type_filter = request.args.get('type', 'All')
    customers = Customer.active()
    if q:
        customers = customers.filter((Customer.name.ilike(f'%{q}%')) | (Customer.phone.ilike(f'%{q}%')))
    if type_filter and type_filter != 'All':
        customers = customers.join(CustomerType).filter(CustomerType.name == type_filter)
    customers = customers.order_by(Customer.created_at.desc()).all()
    types = ['All'] + [t.name for t in CustomerType.query.order_by(CustomerType.id).all()]
    return render_template('customers/list.html', title='Customers', customers=customers,
                           q=q, type_filter=type_filter, types=types)


@customers_bp.route('/add', methods=['GET', 'POST'])
@login_required
@section_required('customers')
@editor_required
def add_customer():
    form = AddCustomerForm()
    form.type_id.choices = type_choices()
    if form.validate_on_submit():
        customer = Customer(
            name=form.name.data.strip(),
            phone=(form.phone.data or '').strip() or None,
            type_id=form.type_id.data,
            balance=form.balance.data or 0,
            has_mou=form.has_mou.data,
        )
        try:
            db.session.add(customer)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not add customer %s', form.name.data)
            flash('Could not add customer', 'danger')
        else:
            logger.info('Customer %s added by %s', customer.name, current_user.email)
            flash('Customer added successfully', 'success')
            return redirect(url_for('customers.list_customers'))
    return render_template('customers/form.html', title='Add Customer', form=form)


@customers_bp.route('/edit/<int:customer_id>', methods=['GET', 'POST'])
@login_required
@section_required('customers')
@editor_required
def edit_customer(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    form = CustomerForm(obj=customer)
    form.type_id.choices = type_choices()
    if form.validate_on_submit():
        customer.name = form.name.data.strip()
        customer.phone = (form.phone.data or '').strip() or None
        customer.type_id = form.type_id.data
        customer.has_mou = form.has_mou.data
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not update customer %s', customer_id)
            flash('Could not update customer', 'danger')
        else:
            flash('Customer updated successfully', 'success')
            return redirect(url_for('customers.list_customers'))
    return render_template('customers/form.html', title='Edit Customer', form=form, customer=customer)


@customers_bp.route('/delete/<int:customer_id>', methods=['POST'])
@login_required
@section_required('customers')
@editor_required
def delete_customer(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    try:
        customer.soft_delete()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not delete customer %s', customer_id)
        flash('Could not delete customer', 'danger')
    else:
        logger.info('Customer %s deleted by %s', customer.name, current_user.email)
        flash('Customer deleted successfully', 'success')
    return redirect(url_for('customers.list_customers'))


@customers_bp.route('/export')
@login_required
@section_required('customers')
def export_customers():
    customers = Customer.active().order_by(Customer.created_at.desc()).all()
    data = [{
        'name': c.name,
        'phone': c.phone,
        'type': c.type_name,
        'balance': c.balance,
        'has_mou': c.has_mou,
        'created_at': c.created_at.strftime('%Y-%m-%d %H:%M') if c.created_at else '',
    } for c in customers]
    df = pd.DataFrame(data, columns=['name', 'phone', 'type', 'balance', 'has_mou', 'created_at'])
    output = BytesIO()
    df.to_excel(output, index=False)
    output.seek(0)
    return send_file(output, as_attachment=True, download_name='customers_export.xlsx',
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')


def read_customer_sheet(upload):
    try:
        if upload.filename.lower().endswith('.csv'):
            df = pd.read_csv(upload, dtype=str)
        else:
            df = pd.read_excel(upload, dtype=str, engine='openpyxl')
    except (ValueError, ImportError, OSError, BadZipFile) as e:
        logger.warning('Unreadable customer sheet %s: %s', upload.filename, e)
        raise ValidationFailed(f'Could not read {upload.filename}')
    df.columns = [str(c).strip().lower() for c in df.columns]
    return df.fillna('')


def _truthy(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'y')


@customers_bp.route('/import', methods=['GET', 'POST'])
@login_required
@section_required('customers')
@editor_required
def import_customers():
    form = CustomerImportForm()
    if form.validate_on_submit():
        types = {t.name.lower(): t for t in CustomerType.query.all()}
        default_type = types.get('retailer')
        try:
            df = read_customer_sheet(form.file.data)
            if 'name' not in df.columns:
                raise ValueError('The sheet needs a "name" column')
            imported = 0
            for row in df.to_dict('records'):
                name = str(row.get('name', '')).strip()
                if not name:
                    continue
                balance = str(row.get('balance', '')).replace(',', '').strip()
                db.session.add(Customer(
                    name=name,
                    phone=str(row.get('phone', '')).strip() or None,
                    customer_type=types.get(str(row.get('type', '')).strip().lower(), default_type),
                    balance=int(float(balance)) if balance else 0,
                    has_mou=_truthy(row.get('has_mou', '')),
                ))
                imported += 1
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Customer import rejected: %s', e)
            flash(f'Import failed: {e}', 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Customer import failed')
            flash('Import failed', 'danger')
        else:
            logger.info('%s customers imported by %s', imported, current_user.email)
            flash(f'{imported} customers imported', 'success')
            return redirect(url_for('customers.list_customers'))
    return render_template('customers/import.html', title='Import Customers', form=form)


@customers_bp.route('/<int:customer_id>/history')
@login_required
@section_required('customers')
def customer_history(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    entries = []
    for order in customer.orders:
        if order.deleted_at is not None:
            continue
        entries.append({
            'kind': 'order',
            'date': order.date_time or order.created_at,
            'label': f'Order #{order.id}',
            'status': order.status,
            'amount': order.total_amount,
            'quantity': order.total_quantity,
            'record': order,
        })
    for log in customer.empties_logs:
        entries.append({
            'kind': 'empties',
            'date': log.created_at,
            'label': 'Empties Return' if log.is_return() else 'Empties for Sale',
            'status': None,
            'amount': None,
            'quantity': log.total_quantity,
            'record': log,
        })
    entries.sort(key=lambda e: e['date'], reverse=True)
    return render_template('customers/history.html', title=f'{customer.name} History',
                           customer=customer, entries=entries)


@customers_bp.route('/return-empties', methods=['GET', 'POST'])
@login_required
@section_required('customers')
@editor_required
def return_empties():
    form = CustomerReturnEmptiesForm()
    form.customer_id.choices = [(0, '-- Select customer --')] + [
        (c.id, c.name) for c in Customer.active().order_by(Customer.name).all()
    ]
    form.set_product_choices(Product.active().all(), predicate=lambda p: p.returnable)
    if not form.add_row() and form.validate_on_submit():
        try:
            customer = db.get_or_404(Customer, form.customer_id.data)
            log = EmptiesLog.record_customer_return(customer, form.selected_products(), form.date.data)
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Empties return rejected: %s', e)
            flash(str(e), 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not record empties return')
            flash('Could not record empties return', 'danger')
        else:
            logger.info('Empties return of %s crates from %s', log.total_quantity, customer.name)
            flash('Empties return recorded successfully', 'success')
            return redirect(url_for('customers.customer_history', customer_id=customer.id))
    form.narrow_product_choices()
    return render_template('customers/return_empties.html', title='Return Empties', form=form)
