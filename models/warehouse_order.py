from datetime import datetime

from errors import InvalidStatusTransition
from models import db


# fulfilment mirror of an approved POS order: pending -> ready | cancelled
class WarehouseOrder(db.Model):
    __tablename__ = 'warehouse_orders'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='pending')
    approved_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship('Order', back_populates='warehouse_order')
    items = db.relationship('WarehouseOrderItem', backref='warehouse_order', cascade='all, delete-orphan')
    approver = db.relationship('Profile')

    def __repr__(self):
        return f'<WarehouseOrder {self.id} {self.status}>'

    @property
    def total_quantity(self):
        return sum(item.quantity for item in self.items)

    def get_status_badge_class(self):
        status_classes = {
            'pending': 'warning',
            'ready': 'success',
            'cancelled': 'danger',
        }
        return status_classes.get(self.status, 'secondary')

    def mark_ready(self, user_id=None):
        """Dispatch: deduct every item from warehouse stock."""
        from models.stock import record_stock_movement

        if self.status != 'pending':
            raise InvalidStatusTransition(f'Warehouse order #{self.id}', self.status, 'ready')

        log_type = self.order.sale_log_type()
        for item in self.items:
            record_stock_movement(
                item.product, -item.quantity, log_type,
                user_id=user_id,
                description=f'Order #{self.order_id} for {self.order.customer_name}',
            )
        self.status = 'ready'
        self.approved_by = user_id
        self.updated_at = datetime.utcnow()

    def cancel(self):
        self.order.cancel()


class WarehouseOrderItem(db.Model):
    __tablename__ = 'warehouse_order_items'
    id = db.Column(db.Integer, primary_key=True)
    warehouse_order_id = db.Column(db.Integer, db.ForeignKey('warehouse_orders.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship('Product')
