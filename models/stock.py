from datetime import datetime

from errors import InsufficientStock, InsufficientEmpties
from models import db
from utils import get_stock_status


# full stock held in the warehouse, one row per product
class WarehouseStock(db.Model):
    __tablename__ = 'warehouse_stock'
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, unique=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(db.DateTime, default=datetime.utcnow)
    updated_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)

    product = db.relationship('Product', back_populates='stock')
    updater = db.relationship('Profile')

    def get_stock_status(self, low_threshold=20):
        return get_stock_status(self.quantity, low_threshold)

    def add_quantity(self, amount, user_id=None):
        self.quantity = (self.quantity or 0) + amount
        self.last_updated = datetime.utcnow()
        if user_id:
            self.updated_by = user_id

    def subtract_quantity(self, amount, user_id=None):
        current = self.quantity or 0
        if current < amount:
            raise InsufficientStock(self.product.sku_name, current, amount)
        self.quantity = current - amount
        self.last_updated = datetime.utcnow()
        if user_id:
            self.updated_by = user_id


# empty crates on the warehouse floor
class EmptiesStock(db.Model):
    __tablename__ = 'empties'
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, unique=True)
    quantity_on_ground = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship('Product', back_populates='empties')


def stock_for(product):
    if product.stock is None:
        product.stock = WarehouseStock(product=product, quantity=0)
        db.session.add(product.stock)
    return product.stock


def empties_for(product):
    if product.empties is None:
        product.empties = EmptiesStock(product=product, quantity_on_ground=0)
        db.session.add(product.empties)
    return product.empties


def record_stock_movement(product, quantity, log_type, user_id=None, description=None, on_date=None):
    """Apply a signed change to warehouse stock and write it to the inventory log."""
    from models.inventory_log import InventoryLog

    stock = stock_for(product)
    if quantity >= 0:
        stock.add_quantity(quantity, user_id)
    else:
        stock.subtract_quantity(-quantity, user_id)
    log = InventoryLog(
        date=on_date or datetime.utcnow().date(),
        product=product,
        type=log_type,
        quantity=quantity,
        description=description,
        user_id=user_id,
    )
    db.session.add(log)
    return log


def move_empties(product, quantity):
    """Signed change to the empty crates on the ground."""
    empties = empties_for(product)
    current = empties.quantity_on_ground or 0
    if current + quantity < 0:
        raise InsufficientEmpties(product.sku_name, current, -quantity)
    empties.quantity_on_ground = current + quantity
    return empties


def apply_stock_count(product, counted, user_id=None, on_date=None):
    """Bring warehouse stock to a physically counted quantity."""
    delta = counted - stock_for(product).quantity
    if delta:
        return record_stock_movement(product, delta, 'stock_adjustment', user_id=user_id,
                                     on_date=on_date, description='Stock take')
    return None
