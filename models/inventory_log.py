from datetime import datetime

from models import db

LOG_TYPES = [
    'opening_stock', 'supplier_receipt', 'vse_loadout', 'vse_return',
    'retail_sale', 'wholesale_sale', 'breakage', 'promo_out',
    'promo_reimbursement', 'stock_adjustment',
]


# warehouse stock ledger: one signed row per movement
class InventoryLog(db.Model):
    __tablename__ = 'inventory_logs'
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, default=lambda: datetime.utcnow().date())
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)  # +in / -out
    description = db.Column(db.String(255))
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    product = db.relationship('Product', backref='inventory_logs')
    user = db.relationship('Profile', backref='inventory_logs')

    @classmethod
    def balances_before(cls, day):
        """Stock per product accumulated before `day`."""
        rows = db.session.query(cls.product_id, db.func.sum(cls.quantity)).filter(
            cls.date < day
        ).group_by(cls.product_id).all()
        return {product_id: int(total or 0) for product_id, total in rows}

    @classmethod
    def for_day(cls, day):
        return cls.query.filter(cls.date == day).order_by(cls.created_at, cls.id).all()
