from datetime import datetime

from models import db

ACTIVITY_LABELS = {
    'customer_purchase': 'Empties for Sale',
    'customer_empties_return': 'Empties Return',
    'empties_to_supplier': 'Returned to Supplier',
}


# crate movement ledger
class EmptiesLog(db.Model):
    __tablename__ = 'empties_log'
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, default=lambda: datetime.utcnow().date())
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True)
    activity = db.Column(db.String(32), nullable=False)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    vehicle_no = db.Column(db.String(32), nullable=True)
    returned_by = db.Column(db.String(128), nullable=True)
    num_of_pallets = db.Column(db.Integer, nullable=True)
    num_of_pcs = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    customer = db.relationship('Customer', backref='empties_logs')
    details = db.relationship('EmptiesLogDetail', backref='log', cascade='all, delete-orphan')

    def get_activity_display(self):
        return ACTIVITY_LABELS.get(self.activity, self.activity)

    def is_return(self):
        return self.activity == 'customer_empties_return'

    @classmethod
    def _create(cls, activity, items, **fields):
        log = cls(activity=activity, total_quantity=sum(qty for _, qty in items), **fields)
        db.session.add(log)
        for product, qty in items:
            db.session.add(EmptiesLogDetail(log=log, product=product, quantity=qty))
        return log

    @classmethod
    def record_purchase(cls, customer, order, items, on_date=None):
        """Returnable crates leaving with a sale come off the customer's balance."""
        log = cls._create('customer_purchase', items, customer=customer, order=order,
                          date=on_date or datetime.utcnow().date())
        customer.consume_empties(log.total_quantity)
        return log

    @classmethod
    def record_customer_return(cls, customer, items, on_date):
        from models.stock import move_empties

        log = cls._create('customer_empties_return', items, customer=customer, date=on_date)
        for product, qty in items:
            move_empties(product, qty)
        customer.return_empties(log.total_quantity)
        return log

    @classmethod
    def record_supplier_return(cls, items, on_date, vehicle_no, returned_by,
                               num_of_pallets=None, num_of_pcs=None):
        from models.stock import move_empties

        log = cls._create('empties_to_supplier', items, date=on_date, vehicle_no=vehicle_no,
                          returned_by=returned_by, num_of_pallets=num_of_pallets,
                          num_of_pcs=num_of_pcs)
        for product, qty in items:
            move_empties(product, -qty)
        return log

    def reverse_supplier_return(self):
        from models.stock import move_empties

        for detail in self.details:
            move_empties(detail.product, detail.quantity)


class EmptiesLogDetail(db.Model):
    __tablename__ = 'empties_log_detail'
    id = db.Column(db.Integer, primary_key=True)
    log_id = db.Column(db.Integer, db.ForeignKey('empties_log.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship('Product')
