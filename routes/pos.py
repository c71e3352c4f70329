from datetime import datetime

from flask import Blueprint, render_template, redirect, url_for, flash, jsonify, request
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from errors import ValidationFailed
from forms.pos_forms import ApproveOrderForm
from logging_config import get_logger
from models import db
from models.customer import Customer
from models.empties import EmptiesLog
from models.product import Product
from models.sale import Order, OrderType, Sale, ORDER_TYPES
from routes.auth import section_required, editor_required
from utils import required_empties

logger = get_logger(__name__)

pos_bp = Blueprint('pos', __name__, url_prefix='/dashboard/pos')

PAYMENT_TYPES = ['cash', 'momo', 'cheque', 'credit']


def build_cart(data):
    """Validate a cart payload and price it for the chosen customer.

    Returns the customer and a list of (product, quantity, unit_price,
    sub_total) lines. Raises ValidationFailed for anything the cashier has
    to fix.
    """
    if not isinstance(data, dict):
        raise ValidationFailed('Invalid request')
    customer_id = data.get('customer_id')
    if not customer_id:
        raise ValidationFailed('Please select a customer')
    try:
        customer = db.session.get(Customer, int(customer_id))
    except (TypeError, ValueError):
        customer = None
    if customer is None or customer.deleted_at is not None:
        raise ValidationFailed('Customer not found')

    items = data.get('items') or []
    if not isinstance(items, list):
        raise ValidationFailed('Invalid cart')
    if not items:
        raise ValidationFailed('Cart is empty')

    lines = []
    seen = set()
    for item in items:
        if not isinstance(item, dict):
            raise ValidationFailed('Invalid cart item')
        try:
            product_id = int(item.get('product_id'))
            quantity = int(item.get('quantity', 0))
        except (TypeError, ValueError):
            raise ValidationFailed('Invalid cart item')
        if quantity < 1:
            raise ValidationFailed('Invalid quantity')
        if product_id in seen:
            raise ValidationFailed('Each product can only be added once')
        seen.add(product_id)
        product = db.session.get(Product, product_id)
        if product is None or product.deleted_at is not None:
            raise ValidationFailed(f'Unknown product (ID: {product_id})')
        price = product.unit_price_for(customer)
        lines.append((product, quantity, price, price * quantity))
    return customer, lines


def quote_payload(customer, lines):
    required = required_empties((product.returnable, qty) for product, qty, _, _ in lines)
    projection = customer.empties_projection(required)
    return {
        'customer_id': customer.id,
        'customer_type': customer.type_name,
        'items': [{
            'product_id': product.id,
            'sku_name': product.sku_name,
            'returnable': product.returnable,
            'quantity': qty,
            'unit_price': price,
            'sub_total': sub_total,
        } for product, qty, price, sub_total in lines],
        'total_amount': sum(line[3] for line in lines),
        'total_quantity': sum(line[1] for line in lines),
        'required_empties': required,
        'current_balance': projection['current'],
        'projected_balance': projection['projected'],
        'insufficient': projection['insufficient'],
        'has_mou': customer.has_mou,
    }


@pos_bp.route('/')
@login_required
@section_required('pos')
def sale_page():
    customers = Customer.active().order_by(Customer.name).all()
    products = Product.active().all()
    return render_template('pos/sale.html', title='Point of Sale', customers=customers,
                           products=products, payment_types=PAYMENT_TYPES, order_types=ORDER_TYPES)


@pos_bp.route('/api/products')
@login_required
@section_required('pos')
def api_products():
    return jsonify([p.to_dict() for p in Product.active().all()])


@pos_bp.route('/api/customers')
@login_required
@section_required('pos')
def api_customers():
    q = request.args.get('q', '').strip()
    customers = Customer.active()
    if q:
        customers = customers.filter((Customer.name.ilike(f'%{q}%')) | (Customer.phone.ilike(f'%{q}%')))
    return jsonify([{
        'id': c.id,
        'name': c.name,
        'phone': c.phone,
        'type': c.type_name,
        'balance': c.balance,
        'has_mou': c.has_mou,
    } for c in customers.order_by(Customer.name).all()])


@pos_bp.route('/api/quote', methods=['POST'])
@login_required
@section_required('pos')
def api_quote():
    data = request.get_json(silent=True) or {}
    try:
        customer, lines = build_cart(data)
    except ValidationFailed as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    return jsonify({'success': True, **quote_payload(customer, lines)})


@pos_bp.route('/api/checkout', methods=['POST'])
@login_required
@section_required('pos')
@editor_required
def api_checkout():
    data = request.get_json(silent=True) or {}
    try:
        customer, lines = build_cart(data)
        order_type_name = data.get('order_type') or 'sale'
        order_type = OrderType.query.filter_by(name=order_type_name).first()
        if order_type is None:
            raise ValidationFailed(f'Unknown order type: {order_type_name}')
        payment_type = data.get('payment_type') or 'cash'
        if payment_type not in PAYMENT_TYPES:
            raise ValidationFailed(f'Unknown payment type: {payment_type}')

        order = Order(
            customer=customer,
            order_type=order_type,
            payment_type=payment_type,
            transaction_id=(data.get('transaction_id') or '').strip() or None,
            total_amount=sum(line[3] for line in lines),
            status='pending',
            date_time=datetime.utcnow(),
            user_id=current_user.id,
        )
        db.session.add(order)
        for product, qty, price, sub_total in lines:
            db.session.add(Sale(
                order=order,
                product=product,
                quantity=qty,
                unit_price=price,
                sub_total=sub_total,
                discount=0,
                user_id=current_user.id,
            ))
        returnable = [(product, qty) for product, qty, _, _ in lines if product.returnable]
        if returnable:
            EmptiesLog.record_purchase(customer, order, returnable)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning('Checkout rejected: %s', e)
        return jsonify({'success': False, 'message': str(e)}), 400
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Checkout failed')
        return jsonify({'success': False, 'message': 'Could not place order'}), 500
    logger.info('Order %s placed for %s by %s (%.2f)', order.id, customer.name,
                current_user.email, order.total_amount)
    return jsonify({'success': True, 'message': 'Order placed successfully', 'order_id': order.id})


@pos_bp.route('/orders')
@login_required
@section_required('pos')
def orders():
    q = request.args.get('q', '').strip()
    query = Order.query.outerjoin(Customer, Order.customer_id == Customer.id).filter(Order.deleted_at.is_(None))
    if q:
        filters = [Customer.name.ilike(f'%{q}%')]
        if 'walk-in'.startswith(q.lower()):
            filters.append(Order.customer_id.is_(None))
        if q.isdigit():
            filters.append(Order.id == int(q))
        query = query.filter(db.or_(*filters))
    records = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return render_template('pos/orders.html', title='Orders', orders=records, q=q)


@pos_bp.route('/orders/<int:order_id>')
@login_required
@section_required('pos')
def order_details(order_id):
    order = db.get_or_404(Order, order_id)
    form = ApproveOrderForm()
    return render_template('pos/order_details.html', title=f'Order #{order.id}', order=order, form=form)


@pos_bp.route('/orders/<int:order_id>/approve', methods=['POST'])
@login_required
@section_required('pos')
@editor_required
def approve_order(order_id):
    order = db.get_or_404(Order, order_id)
    form = ApproveOrderForm()
    if not form.validate_on_submit():
        for errors in form.errors.values():
            for error in errors:
                flash(error, 'danger')
        return redirect(url_for('pos.order_details', order_id=order.id))
    try:
        order.approve(form.amount_tendered.data, current_user.id)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning('Order %s not approved: %s', order_id, e)
        flash(str(e), 'danger')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not approve order %s', order_id)
        flash('Could not approve order', 'danger')
    else:
        logger.info('Order %s approved by %s', order_id, current_user.email)
        flash('Order approved and sent to the warehouse', 'success')
    return redirect(url_for('pos.order_details', order_id=order.id))


@pos_bp.route('/orders/<int:order_id>/cancel', methods=['POST'])
@login_required
@section_required('pos')
@editor_required
def cancel_order(order_id):
    order = db.get_or_404(Order, order_id)
    try:
        order.cancel()
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        logger.warning('Order %s not cancelled: %s', order_id, e)
        flash(str(e), 'danger')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not cancel order %s', order_id)
        flash('Could not cancel order', 'danger')
    else:
        logger.info('Order %s cancelled by %s', order_id, current_user.email)
        flash('Order cancelled', 'success')
    return redirect(request.referrer or url_for('pos.orders'))
