from datetime import datetime

from models import db


# supplier delivery into the warehouse
class InventoryReceivable(db.Model):
    __tablename__ = 'inventory_receivables'
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    purchase_order_number = db.Column(db.String(64), nullable=False)
    received_by = db.Column(db.String(128), nullable=False)
    delivered_by = db.Column(db.String(128), nullable=False)
    vehicle_no = db.Column(db.String(32), nullable=False)
    num_of_pallets = db.Column(db.Integer, default=0)
    num_of_pcs = db.Column(db.Integer, default=0)
    purchase_order_img_url = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship('InventoryReceivableItem', backref='receivable', cascade='all, delete-orphan')

    @property
    def total_quantity(self):
        return sum(item.qty for item in self.items)

    @classmethod
    def record(cls, items, user_id=None, **fields):
        from models.stock import record_stock_movement

        receivable = cls(**fields)
        db.session.add(receivable)
        for product, qty in items:
            db.session.add(InventoryReceivableItem(
                receivable=receivable, product=product, qty=qty, date=receivable.date,
            ))
            record_stock_movement(
                product, qty, 'supplier_receipt', user_id=user_id, on_date=receivable.date,
                description=f'PO {receivable.purchase_order_number}',
            )
        return receivable

    def reverse(self, user_id=None):
        """Take the delivered quantities back out before the record is deleted."""
        from models.stock import record_stock_movement

        for item in self.items:
            record_stock_movement(
                item.product, -item.qty, 'stock_adjustment', user_id=user_id,
                description=f'Deleted delivery PO {self.purchase_order_number}',
            )


class InventoryReceivableItem(db.Model):
    __tablename__ = 'inventory_receivable_items'
    id = db.Column(db.Integer, primary_key=True)
    receivable_id = db.Column(db.Integer, db.ForeignKey('inventory_receivables.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=True)

    product = db.relationship('Product')
