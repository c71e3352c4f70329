import pytest
from sqlalchemy.exc import SQLAlchemyError

from app import create_app
from config import TestingConfig
from create_db import seed_reference_data
from models import db
from models.customer import Customer, CustomerType
from models.product import Product
from models.stock import stock_for, empties_for
from models.user import Profile

PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(Config)
    with app.app_context():
        db.create_all()
        seed_reference_data()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.rollback()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(role='admin', email=None, active=True):
    user = Profile(email=email or f'{role}@opk.test', full_name=role.replace('_', ' ').title(),
                   role=role, is_active=active)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def make_customer(name='Kofi Stores', type_name='Retailer', balance=0, has_mou=False):
    customer_type = CustomerType.query.filter_by(name=type_name).one()
    customer = Customer(name=name, customer_type=customer_type, balance=balance, has_mou=has_mou)
    db.session.add(customer)
    db.session.commit()
    return customer


def make_product(sku_name='Club Beer 625ml', returnable=True, retail=100.0, wholesale=90.0,
                 stock=0, empties=0, code_name=None):
    product = Product(sku_name=sku_name, code_name=code_name, returnable=returnable,
                      retail_price=retail, wholesale_price=wholesale)
    db.session.add(product)
    stock_for(product).quantity = stock
    empties_for(product).quantity_on_ground = empties
    db.session.commit()
    return product


def login(client, app, role='admin', **kwargs):
    with app.app_context():
        email = make_user(role, **kwargs).email
    client.post('/login', data={'email': email, 'password': PASSWORD})
    return client


@pytest.fixture
def admin_client(client, app):
    return login(client, app, 'admin')


def break_commits(monkeypatch):
    """Make every later commit fail the way a lost database connection would."""
    def commit():
        raise SQLAlchemyError('database is locked')
    monkeypatch.setattr(db.session, 'commit', commit)
