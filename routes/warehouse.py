import os
import uuid
from datetime import date, datetime, time

from flask import Blueprint, current_app, render_template, redirect, url_for, flash, request
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from forms.item_forms import ReceivableForm, BreakageForm, LoadoutForm, LoadoutSettleForm, TakeStockForm
from logging_config import get_logger
from models import db
from models.breakage import Breakage
from models.customer import Customer, CustomerType
from models.inventory_log import InventoryLog
from models.loadout import Loadout
from models.product import Product
from models.receivable import InventoryReceivable
from models.sale import Order
from models.stock import apply_stock_count
from models.warehouse_order import WarehouseOrder
from routes.auth import section_required, editor_required
from utils import VSE, date_range_args, parse_date, summarize_inventory, get_stock_status

logger = get_logger(__name__)

warehouse_bp = Blueprint('warehouse', __name__, url_prefix='/dashboard/warehouse')

IMAGE_BUCKET = 'receivable-images'


def save_upload(file_storage, bucket=IMAGE_BUCKET):
    """Store an uploaded file under the upload folder; returns its path relative to it."""
    filename = secure_filename(file_storage.filename or '')
    ext = os.path.splitext(filename)[1].lower()
    name = f'{uuid.uuid4().hex}{ext}'
    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], bucket)
    os.makedirs(folder, exist_ok=True)
    file_storage.save(os.path.join(folder, name))
    return f'{bucket}/{name}'


def _search_orders(query, q):
    if not q:
        return query
    filters = [Customer.name.ilike(f'%{q}%')]
    if q.isdigit():
        filters.append(Order.id == int(q))
        filters.append(WarehouseOrder.id == int(q))
    return query.filter(db.or_(*filters))


@warehouse_bp.route('/')
@login_required
@section_required('warehouse')
def index():
    return redirect(url_for('warehouse.pending_orders'))


@warehouse_bp.route('/orders/pending')
@login_required
@section_required('warehouse')
def pending_orders():
    q = request.args.get('q', '').strip()
    query = WarehouseOrder.query.join(Order).outerjoin(Customer, Order.customer_id == Customer.id).filter(
        WarehouseOrder.status == 'pending'
    )
    orders = _search_orders(query, q).order_by(WarehouseOrder.created_at.desc()).all()
    return render_template('warehouse/pending_orders.html', title='Pending Orders', orders=orders, q=q)


@warehouse_bp.route('/orders/completed')
@login_required
@section_required('warehouse')
def completed_orders():
    q = request.args.get('q', '').strip()
    start, end = date_range_args(request.args)
    query = WarehouseOrder.query.join(Order).outerjoin(Customer, Order.customer_id == Customer.id).filter(
        WarehouseOrder.status == 'ready',
        WarehouseOrder.updated_at >= datetime.combine(start, time.min),
        WarehouseOrder.updated_at <= datetime.combine(end, time.max),
    )
    orders = _search_orders(query, q).order_by(WarehouseOrder.updated_at.desc()).all()
    return render_template('warehouse/completed_orders.html', title='Completed Orders',
                           orders=orders, q=q, start=start, end=end)


@warehouse_bp.route('/orders/<int:warehouse_order_id>/approve', methods=['POST'])
@login_required
@section_required('warehouse')
@editor_required
def approve_order(warehouse_order_id):
    warehouse_order = db.get_or_404(WarehouseOrder, warehouse_order_id)
    try:
        warehouse_order.mark_ready(current_user.id)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning('Warehouse order %s not approved: %s', warehouse_order_id, e)
        flash(str(e), 'danger')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not approve warehouse order %s', warehouse_order_id)
        flash('Could not approve order', 'danger')
    else:
        logger.info('Warehouse order %s marked ready by %s', warehouse_order_id, current_user.email)
        flash('Order approved and stock updated', 'success')
    return redirect(url_for('warehouse.pending_orders'))


@warehouse_bp.route('/orders/<int:warehouse_order_id>/cancel', methods=['POST'])
@login_required
@section_required('warehouse')
@editor_required
def cancel_order(warehouse_order_id):
    warehouse_order = db.get_or_404(WarehouseOrder, warehouse_order_id)
    try:
        warehouse_order.cancel()
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning('Warehouse order %s not cancelled: %s', warehouse_order_id, e)
        flash(str(e), 'danger')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not cancel warehouse order %s', warehouse_order_id)
        flash('Could not cancel order', 'danger')
    else:
        flash('Order cancelled', 'success')
    return redirect(url_for('warehouse.pending_orders'))


@warehouse_bp.route('/receivables/new', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def record_receivable():
    form = ReceivableForm()
    form.set_product_choices(Product.active().all())
    if not form.add_row() and form.validate_on_submit():
        try:
            image_path = None
            if form.purchase_order_image.data:
                image_path = save_upload(form.purchase_order_image.data)
            receivable = InventoryReceivable.record(
                form.selected_products(),
                user_id=current_user.id,
                date=form.date.data,
                purchase_order_number=form.purchase_order_number.data.strip(),
                received_by=form.received_by.data.strip(),
                delivered_by=form.delivered_by.data.strip(),
                vehicle_no=form.vehicle_no.data.strip(),
                num_of_pallets=form.num_of_pallets.data or 0,
                num_of_pcs=form.num_of_pcs.data or 0,
                purchase_order_img_url=image_path,
            )
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Receivable rejected: %s', e)
            flash(str(e), 'danger')
        except (SQLAlchemyError, OSError):
            db.session.rollback()
            logger.exception('Could not record receivable')
            flash('Could not record receivable', 'danger')
        else:
            logger.info('Receivable PO %s recorded by %s', receivable.purchase_order_number, current_user.email)
            flash('Receivable recorded successfully', 'success')
            return redirect(url_for('warehouse.receivables'))
    form.narrow_product_choices()
    return render_template('warehouse/receivable_form.html', title='Record Receivable', form=form)


@warehouse_bp.route('/receivables')
@login_required
@section_required('warehouse')
def receivables():
    q = request.args.get('q', '').strip()
    query = InventoryReceivable.query
    if q:
        query = query.filter(db.or_(
            InventoryReceivable.purchase_order_number.ilike(f'%{q}%'),
            InventoryReceivable.received_by.ilike(f'%{q}%'),
            InventoryReceivable.delivered_by.ilike(f'%{q}%'),
            InventoryReceivable.vehicle_no.ilike(f'%{q}%'),
        ))
    records = query.order_by(InventoryReceivable.date.desc(), InventoryReceivable.id.desc()).all()
    return render_template('warehouse/receivables.html', title='Receivables Log', receivables=records, q=q)


@warehouse_bp.route('/inventory-log')
@login_required
@section_required('warehouse')
def inventory_log():
    day = parse_date(request.args.get('date'), date.today())
    summary = summarize_inventory(
        Product.active().all(),
        InventoryLog.for_day(day),
        InventoryLog.balances_before(day),
    )
    return render_template('warehouse/inventory_log.html', title='Inventory Log', summary=summary, day=day)


def vse_choices():
    vses = Customer.active().join(CustomerType).filter(CustomerType.name == VSE).order_by(Customer.name).all()
    return [(0, '-- Select VSE --')] + [(c.id, c.name) for c in vses]


@warehouse_bp.route('/loadouts/new', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def add_loadout():
    form = LoadoutForm()
    form.vse_id.choices = vse_choices()
    form.set_product_choices(Product.active().all())
    if not form.add_row() and form.validate_on_submit():
        try:
            vse = db.get_or_404(Customer, form.vse_id.data)
            loadout = Loadout.record(vse, form.selected_products(), form.date.data, current_user.id)
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Loadout rejected: %s', e)
            flash(str(e), 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not save loadout')
            flash('Could not save loadout', 'danger')
        else:
            logger.info('Loadout %s of %s items for %s', loadout.id, loadout.given, vse.name)
            flash('Loadout saved successfully', 'success')
            return redirect(url_for('warehouse.loadout_summary', date=loadout.date.isoformat()))
    form.narrow_product_choices()
    return render_template('warehouse/loadout_form.html', title='Add Loadout', form=form)


@warehouse_bp.route('/loadouts')
@login_required
@section_required('warehouse')
def loadout_summary():
    day = parse_date(request.args.get('date'), date.today())
    loadouts = Loadout.query.filter(Loadout.date == day).order_by(Loadout.id).all()
    totals = {
        'given': sum(l.given for l in loadouts),
        'sold': sum(l.sold for l in loadouts),
        'returned': sum(l.returned for l in loadouts),
        'balance': sum(l.balance for l in loadouts),
    }
    return render_template('warehouse/loadouts.html', title='Loadout Summary',
                           loadouts=loadouts, totals=totals, day=day)


@warehouse_bp.route('/loadouts/<int:loadout_id>/settle', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def settle_loadout(loadout_id):
    loadout = db.get_or_404(Loadout, loadout_id)
    form = LoadoutSettleForm.for_loadout(loadout)
    if form.validate_on_submit():
        try:
            loadout.settle(form.results(), current_user.id)
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Loadout %s settlement rejected: %s', loadout_id, e)
            flash(str(e), 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not settle loadout %s', loadout_id)
            flash('Could not settle loadout', 'danger')
        else:
            flash('Loadout updated successfully', 'success')
            return redirect(url_for('warehouse.loadout_summary', date=loadout.date.isoformat()))
    return render_template('warehouse/loadout_settle.html', title='Settle Loadout', loadout=loadout,
                           form=form, items_by_id={item.id: item for item in loadout.items})


@warehouse_bp.route('/breakages')
@login_required
@section_required('warehouse')
def breakages():
    q = request.args.get('q', '').strip()
    start, end = date_range_args(request.args)
    query = Breakage.query.join(Product).filter(Breakage.date >= start, Breakage.date <= end)
    if q:
        query = query.filter(db.or_(Product.sku_name.ilike(f'%{q}%'), Breakage.reason.ilike(f'%{q}%')))
    records = query.order_by(Breakage.date.desc(), Breakage.id.desc()).all()
    return render_template('warehouse/breakages.html', title='Breakages', breakages=records,
                           q=q, start=start, end=end, total=sum(b.quantity for b in records))


@warehouse_bp.route('/breakages/new', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def record_breakages():
    form = BreakageForm()
    form.set_product_choices(Product.active().all())
    if not form.add_row() and form.validate_on_submit():
        try:
            records = Breakage.record_many(form.selected_products(), form.date.data,
                                           reason=form.reason.data, user_id=current_user.id)
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Breakages rejected: %s', e)
            flash(str(e), 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not record breakages')
            flash('Could not record breakages', 'danger')
        else:
            logger.info('%s breakage rows recorded by %s', len(records), current_user.email)
            flash('Breakages recorded successfully', 'success')
            return redirect(url_for('warehouse.breakages'))
    form.narrow_product_choices()
    return render_template('warehouse/breakage_form.html', title='Record Breakages', form=form)


@warehouse_bp.route('/take-stock', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def take_stock():
    form = TakeStockForm()
    form.set_product_choices(Product.active().all())
    if not form.add_row() and form.validate_on_submit():
        try:
            broken = form.selected_products('breakage_items')
            counted = form.selected_products('items')
            # breakages first so the physical count has the last word
            if broken:
                Breakage.record_many(broken, form.date.data, reason='Stock take', user_id=current_user.id)
            for product, quantity in counted:
                apply_stock_count(product, quantity, user_id=current_user.id, on_date=form.date.data)
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            logger.warning('Stock take rejected: %s', e)
            flash(str(e), 'danger')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not save stock take')
            flash('Could not save stock take', 'danger')
        else:
            logger.info('Stock take by %s: %s counted, %s broken', current_user.email, len(counted), len(broken))
            flash('Stock take saved successfully', 'success')
            return redirect(url_for('warehouse.stock_report'))
    form.narrow_product_choices()
    return render_template('warehouse/take_stock.html', title='Take Stock', form=form)


@warehouse_bp.route('/stock-report')
@login_required
@section_required('warehouse')
def stock_report():
    threshold = current_app.config.get('LOW_STOCK_THRESHOLD', 20)
    rows = [{
        'product': p,
        'quantity': p.quantity,
        'status': get_stock_status(p.quantity, threshold),
    } for p in Product.active().all()]
    totals = {
        'products': len(rows),
        'quantity': sum(r['quantity'] for r in rows),
        'low': sum(1 for r in rows if r['status'] == 'low'),
        'out': sum(1 for r in rows if r['status'] == 'out'),
    }
    return render_template('warehouse/stock_report.html', title='Stock Report', rows=rows, totals=totals)
