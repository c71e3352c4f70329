from datetime import datetime

from errors import InsufficientEmptiesBalance
from models import db
from utils import project_empties_balance, WHOLESALER, VSE

CUSTOMER_TYPES = ['Retailer', WHOLESALER, VSE]


class CustomerType(db.Model):
    __tablename__ = 'customer_types'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)

    def __repr__(self):
        return f'<CustomerType {self.name}>'


class Customer(db.Model):
    __tablename__ = 'customers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    type_id = db.Column(db.Integer, db.ForeignKey('customer_types.id'), nullable=False)
    # crate balance: empties brought in minus returnable crates bought
    balance = db.Column(db.Integer, nullable=False, default=0)
    has_mou = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    customer_type = db.relationship('CustomerType', backref='customers')

    def __repr__(self):
        return f'<Customer {self.name}>'

    @classmethod
    def active(cls):
        return cls.query.filter(cls.deleted_at.is_(None))

    @property
    def type_name(self):
        return self.customer_type.name if self.customer_type else None

    def is_wholesaler(self):
        return self.type_name == WHOLESALER

    def is_vse(self):
        return self.type_name == VSE

    def empties_projection(self, required):
        return project_empties_balance(self.balance, self.has_mou, required)

    def consume_empties(self, quantity):
        """Take returnable crates out of the balance; only an MOU allows going negative."""
        projection = self.empties_projection(quantity)
        if projection['insufficient']:
            raise InsufficientEmptiesBalance(self.name, self.balance, quantity)
        self.balance = projection['projected']

    def return_empties(self, quantity):
        self.balance = (self.balance or 0) + quantity

    def soft_delete(self):
        self.deleted_at = datetime.utcnow()
