from datetime import datetime

from models import db


class Breakage(db.Model):
    __tablename__ = 'breakages'
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False, default='Breakage')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    product = db.relationship('Product', backref='breakages')

    @classmethod
    def record_many(cls, items, on_date, reason=None, user_id=None):
        from models.stock import record_stock_movement

        reason = (reason or '').strip() or 'Breakage'
        records = []
        for product, qty in items:
            record = cls(date=on_date, product=product, quantity=qty, reason=reason)
            db.session.add(record)
            record_stock_movement(product, -qty, 'breakage', user_id=user_id, on_date=on_date,
                                  description=reason)
            records.append(record)
        return records
