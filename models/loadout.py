from datetime import datetime

from errors import ValidationFailed
from models import db
from utils import loadout_balance


# stock handed to a VSE for the day
class Loadout(db.Model):
    __tablename__ = 'loadouts'
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    vse_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    vse = db.relationship('Customer', backref='loadouts')
    items = db.relationship('LoadoutItem', backref='loadout', cascade='all, delete-orphan')

    @property
    def given(self):
        return sum(i.quantity for i in self.items)

    @property
    def sold(self):
        return sum(i.quantity_sold or 0 for i in self.items)

    @property
    def returned(self):
        return sum(i.quantity_returned or 0 for i in self.items)

    @property
    def balance(self):
        return loadout_balance(self.given, self.sold, self.returned)

    @classmethod
    def record(cls, vse, items, on_date, user_id=None):
        from models.stock import record_stock_movement

        if not vse.is_vse():
            raise ValidationFailed(f'{vse.name} is not a VSE')
        loadout = cls(vse=vse, date=on_date, user_id=user_id)
        db.session.add(loadout)
        for product, qty in items:
            db.session.add(LoadoutItem(loadout=loadout, product=product, quantity=qty))
            record_stock_movement(product, -qty, 'vse_loadout', user_id=user_id, on_date=on_date,
                                  description=f'Loadout to {vse.name}')
        return loadout

    def settle(self, results, user_id=None):
        """Record sold/returned per item; `results` maps item id to (sold, returned)."""
        from models.stock import record_stock_movement

        for item in self.items:
            if item.id not in results:
                continue
            sold, returned = results[item.id]
            if sold < 0 or returned < 0 or sold + returned > item.quantity:
                raise ValidationFailed(
                    f'{item.product.sku_name}: sold and returned cannot exceed {item.quantity}'
                )
            delta = returned - (item.quantity_returned or 0)
            if delta:
                record_stock_movement(item.product, delta, 'vse_return', user_id=user_id,
                                      description=f'Loadout return from {self.vse.name}')
            item.quantity_sold = sold
            item.quantity_returned = returned


class LoadoutItem(db.Model):
    __tablename__ = 'loadout_items'
    id = db.Column(db.Integer, primary_key=True)
    loadout_id = db.Column(db.Integer, db.ForeignKey('loadouts.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    quantity_sold = db.Column(db.Integer, nullable=False, default=0)
    quantity_returned = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship('Product')

    @property
    def balance(self):
        return loadout_balance(self.quantity, self.quantity_sold or 0, self.quantity_returned or 0)
