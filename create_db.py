import os
import sys

from app import create_app
from logging_config import get_logger
from models import db
from models.customer import CustomerType, CUSTOMER_TYPES
from models.sale import OrderType, ORDER_TYPES
from models.user import Profile

logger = get_logger(__name__)


def seed_reference_data():
    """Insert the customer and order types the app expects; safe to run twice."""
    for name in CUSTOMER_TYPES:
        if not CustomerType.query.filter_by(name=name).first():
            db.session.add(CustomerType(name=name))
    for name in ORDER_TYPES:
        if not OrderType.query.filter_by(name=name).first():
            db.session.add(OrderType(name=name))
    db.session.commit()


def create_admin(email, password, full_name='Administrator'):
    email = email.strip().lower()
    admin = Profile.query.filter_by(email=email).first()
    if admin:
        return admin
    admin = Profile(email=email, full_name=full_name, role='admin')
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    return admin


def create_database(reset=False):
    app = create_app()
    with app.app_context():
        if reset:
            db.drop_all()
            logger.info('Dropped existing tables')
        db.create_all()
        logger.info('Tables created')

        seed_reference_data()
        logger.info('Reference data seeded')

        email = os.environ.get('ADMIN_EMAIL', 'admin@opk.local')
        password = os.environ.get('ADMIN_PASSWORD', 'admin123')
        create_admin(email, password)
        print('Login details:')
        print(f'Email: {email}')
        print(f'Password: {password}')


if __name__ == '__main__':
    create_database(reset='--reset' in sys.argv)
