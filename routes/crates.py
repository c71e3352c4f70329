from flask import Blueprint, render_template, redirect, url_for, flash, request
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from forms.item_forms import ReturnCratesForm
from logging_config import get_logger
from models import db
from models.customer import Customer
from models.empties import EmptiesLog
from models.product import Product
from models.receivable import InventoryReceivable
from routes.auth import section_required, editor_required
from utils import crate_stats, date_range_args

logger = get_logger(__name__)

crates_bp = Blueprint('crates', __name__, url_prefix='/dashboard/crates')


@crates_bp.route('/')
@login_required
@section_required('crates')
def overview():
    products = Product.active().filter(Product.returnable.is_(True)).all()
    balances = [c.balance or 0 for c in Customer.active().all()]
    stats = crate_stats(
        [p.quantity for p in products],
        [p.empties_on_ground for p in products],
        balances,
    )
    return render_template('crates/overview.html', title='Crates', products=products, stats=stats)


@crates_bp.route('/brought-in')
@login_required
@section_required('crates')
def brought_in():
    receivables = InventoryReceivable.query.order_by(
        InventoryReceivable.date.desc(), InventoryReceivable.id.desc()
    ).all()
    total_stock = sum(p.quantity for p in Product.active().all())
    return render_template('crates/brought_in.html', title='Crates Brought In',
                           receivables=receivables, total_stock=total_stock)


@crates_bp.route('/brought-in/delete/<int:receivable_id>', methods=['POST'])
@login_required
@section_required('crates')
@editor_required
def delete_brought_in(receivable_id):
    receivable = db.get_or_404(InventoryReceivable, receivable_id)
    try:
        receivable.reverse(current_user.id)
        db.session.delete(receivable)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning('Could not delete delivery %s: %s', receivable_id, e)
        flash(str(e), 'danger')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not delete delivery %s', receivable_id)
        flash('Could not delete record', 'danger')
    else:
        logger.info('Delivery %s deleted by %s', receivable_id, current_user.email)
        flash('Record deleted successfully', 'success')
    return redirect(url_for('crates.brought_in'))


@crates_bp.route('/returned')
@login_required
@section_required('crates')
def returned():
    start, end = date_range_args(request.args)
    logs = EmptiesLog.query.filter(
        EmptiesLog.activity == 'empties_to_supplier',
        EmptiesLog.date >= start,
        EmptiesLog.date <= end,
    ).order_by(EmptiesLog.date.desc(), EmptiesLog.id.desc()).all()
    return render_template('crates/returned.html', title='Crates Returned', logs=logs,
                           start=start, end=end, total=sum(log.total_quantity for log in logs))


@crates_bp.route('/returned/delete/<int:log_id>', methods=['POST'])
@login_required
@section_required('crates')
@editor_required
def delete_returned(log_id):
    log = db.get_or_404(EmptiesLog, log_id)
    if log.activity != 'empties_to_supplier':
        flash('Only supplier returns can be deleted here', 'danger')
        return redirect(url_for('crates.returned'))
    try:
        log.reverse_supplier_return()
        db.session.delete(log)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not delete crate return %s', log_id)
        flash('Could not delete record', 'danger')
    else:
        flash('Record deleted successfully', 'success')
    return redirect(url_for('crates.returned'))


@crates_bp.route('/return', methods=['GET', 'POST'])
@login_required
@section_required('crates')
@editor_required
def return_crates():
    form = ReturnCratesForm()
    form.set_product_choices(Product.active().all(), predicate=lambda p: p.returnable)
    if not form.add_row() and form.validate_on_submit():
        try:
            log = EmptiesLog.record_supplier_return(
                form.selected_products(),
                on_date=form.date.data,
                vehicle_no=form.vehicle_no.data.strip(),
                returned_by=form.returned_by.data.strip(),
                num_of_pallets=form.num_of_pallets.data,
                num_of_pcs=form.num_of_pcs.data,
            )
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Crate return rejected: %s', e)
            flash(str(e), 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not record crate return')
            flash('Could not record crate return', 'danger')
        else:
            logger.info('%s crates returned to supplier by %s', log.total_quantity, current_user.email)
            flash('Crates return recorded successfully', 'success')
            return redirect(url_for('crates.returned'))
    form.narrow_product_choices()
    return render_template('crates/return.html', title='Return Crates', form=form)
