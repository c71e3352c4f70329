from datetime import datetime

from errors import InvalidStatusTransition, ValidationFailed
from models import db

ORDER_TYPES = ['sale', 'vse', 'promo', 'protocol']


class OrderType(db.Model):
    __tablename__ = 'order_types'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


# POS order header: pending -> approved | cancelled
class Order(db.Model):
    __tablename__ = 'orders'
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True)
    total_amount = db.Column(db.Float, nullable=False, default=0)
    amount_tendered = db.Column(db.Float, nullable=True)
    payment_type = db.Column(db.String(32), nullable=True)  # cash / momo / cheque / credit
    transaction_id = db.Column(db.String(64), nullable=True)
    order_type_id = db.Column(db.Integer, db.ForeignKey('order_types.id'), nullable=False)
    date_time = db.Column(db.DateTime, default=datetime.utcnow)
    status = db.Column(db.String(16), nullable=False, default='pending')
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    customer = db.relationship('Customer', backref='orders')
    order_type = db.relationship('OrderType')
    user = db.relationship('Profile', backref='orders')
    sales = db.relationship('Sale', backref='order', cascade='all, delete-orphan')
    warehouse_order = db.relationship('WarehouseOrder', back_populates='order', uselist=False)
    empties_logs = db.relationship('EmptiesLog', backref='order')

    def __repr__(self):
        return f'<Order {self.id} {self.status}>'

    @property
    def customer_name(self):
        return self.customer.name if self.customer else 'Walk-in'

    @property
    def items(self):
        return [s for s in self.sales if s.deleted_at is None]

    @property
    def total_quantity(self):
        return sum(s.quantity for s in self.items)

    def get_status_badge_class(self):
        status_classes = {
            'pending': 'warning',
            'approved': 'success',
            'cancelled': 'danger',
        }
        return status_classes.get(self.status, 'secondary')

    def can_be_approved(self):
        return self.status == 'pending'

    def can_be_cancelled(self):
        if self.status == 'pending':
            return True
        if self.status == 'approved':
            return self.warehouse_order is None or self.warehouse_order.status == 'pending'
        return False

    def approve(self, amount_tendered, user_id=None):
        """Record payment and hand the order to the warehouse."""
        from models.warehouse_order import WarehouseOrder, WarehouseOrderItem

        if not self.can_be_approved():
            raise InvalidStatusTransition(f'Order #{self.id}', self.status, 'approved')
        if amount_tendered is None or amount_tendered < self.total_amount:
            raise ValidationFailed(f'Amount tendered must be at least {self.total_amount:.2f}')

        self.status = 'approved'
        self.amount_tendered = amount_tendered
        self.updated_at = datetime.utcnow()

        warehouse_order = WarehouseOrder(order=self, status='pending')
        db.session.add(warehouse_order)
        for sale in self.items:
            db.session.add(WarehouseOrderItem(
                warehouse_order=warehouse_order,
                product=sale.product,
                quantity=sale.quantity,
            ))
        return warehouse_order

    def cancel(self):
        """Cancel the order and its warehouse mirror, giving back consumed empties."""
        if not self.can_be_cancelled():
            current = self.warehouse_order.status if self.warehouse_order else self.status
            raise InvalidStatusTransition(f'Order #{self.id}', current, 'cancelled')

        if self.warehouse_order is not None:
            self.warehouse_order.status = 'cancelled'
            self.warehouse_order.updated_at = datetime.utcnow()
        self.status = 'cancelled'
        self.updated_at = datetime.utcnow()

        if self.customer is not None:
            for log in self.empties_logs:
                if log.activity == 'customer_purchase':
                    self.customer.return_empties(log.total_quantity)

    def sale_log_type(self):
        """Inventory log type used when the warehouse dispatches this order."""
        type_name = self.order_type.name if self.order_type else 'sale'
        if type_name in ('promo', 'protocol'):
            return 'promo_out'
        if self.customer is not None and self.customer.is_wholesaler():
            return 'wholesale_sale'
        return 'retail_sale'


# order line
class Sale(db.Model):
    __tablename__ = 'sales'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    discount = db.Column(db.Float, default=0)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    sub_total = db.Column(db.Float, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    product = db.relationship('Product', backref='sales')
