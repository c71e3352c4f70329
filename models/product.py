from datetime import datetime

from models import db
from utils import unit_price, get_stock_level


# product (SKU) sold and stocked by the warehouse
class Product(db.Model):
    __tablename__ = 'products'
    id = db.Column(db.Integer, primary_key=True)
    sku_name = db.Column(db.String(128), nullable=False)
    code_name = db.Column(db.String(64), nullable=True)
    wholesale_price = db.Column(db.Float, nullable=True)
    retail_price = db.Column(db.Float, nullable=True)
    returnable = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    stock = db.relationship('WarehouseStock', back_populates='product', uselist=False)
    empties = db.relationship('EmptiesStock', back_populates='product', uselist=False)

    def __repr__(self):
        return f'<Product {self.sku_name}>'

    @classmethod
    def active(cls):
        return cls.query.filter(cls.deleted_at.is_(None)).order_by(cls.sku_name)

    @property
    def name(self):
        return self.sku_name

    @property
    def quantity(self):
        return self.stock.quantity if self.stock else 0

    @property
    def empties_on_ground(self):
        return self.empties.quantity_on_ground if self.empties else 0

    def get_stock_level(self):
        return get_stock_level(self.quantity)

    def unit_price_for(self, customer=None):
        return unit_price(self.retail_price, self.wholesale_price,
                          customer.type_name if customer else None)

    def soft_delete(self):
        self.deleted_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'sku_name': self.sku_name,
            'code_name': self.code_name,
            'retail_price': self.retail_price,
            'wholesale_price': self.wholesale_price,
            'returnable': self.returnable,
            'quantity': self.quantity,
        }
