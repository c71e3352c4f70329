import io
from datetime import date

import pandas as pd
import pytest

from conftest import break_commits, login, make_customer, make_product
from models import db
from models.customer import Customer, CustomerType
from models.empties import EmptiesLog
from models.product import Product

TODAY = date.today().isoformat()


@pytest.fixture
def empties_manager(client, app):
    return login(client, app, 'empties_manager')


def test_add_customer(empties_manager, app):
    with app.app_context():
        wholesaler = CustomerType.query.filter_by(name='Wholesaler').one().id

    response = empties_manager.post('/dashboard/customers/add', data={
        'name': 'Big Buyer', 'phone': '0244000000', 'type_id': str(wholesaler),
        'balance': '12', 'has_mou': 'y',
    })

    assert response.status_code == 302
    with app.app_context():
        customer = Customer.query.one()
        assert (customer.name, customer.type_name, customer.balance, customer.has_mou) == (
            'Big Buyer', 'Wholesaler', 12, True)


def test_add_customer_requires_name(empties_manager):
    response = empties_manager.post('/dashboard/customers/add', data={'name': '', 'type_id': '1'})
    assert response.status_code == 200
    assert b'Customer name is required' in response.data


def test_list_filters_by_search_and_type(empties_manager, app):
    with app.app_context():
        make_customer('Kofi Stores')
        make_customer('Big Buyer', type_name='Wholesaler')

    page = empties_manager.get('/dashboard/customers/?type=Wholesaler').get_data(as_text=True)
    assert 'Big Buyer' in page and 'Kofi Stores' not in page

    page = empties_manager.get('/dashboard/customers/?q=kofi').get_data(as_text=True)
    assert 'Kofi Stores' in page and 'Big Buyer' not in page


def test_edit_and_soft_delete(empties_manager, app):
    with app.app_context():
        customer_id = make_customer('Kofi Stores').id
        retailer = CustomerType.query.filter_by(name='Retailer').one().id

    empties_manager.post(f'/dashboard/customers/edit/{customer_id}', data={
        'name': 'Kofi & Sons', 'phone': '', 'type_id': str(retailer),
    })
    empties_manager.post(f'/dashboard/customers/delete/{customer_id}')

    with app.app_context():
        customer = db.session.get(Customer, customer_id)
        assert customer.name == 'Kofi & Sons'
        assert customer.deleted_at is not None
        assert Customer.active().count() == 0


def test_export_customers(empties_manager, app):
    with app.app_context():
        make_customer('Kofi Stores', balance=4)

    response = empties_manager.get('/dashboard/customers/export')

    assert response.status_code == 200
    df = pd.read_excel(io.BytesIO(response.data))
    assert list(df['name']) == ['Kofi Stores']
    assert list(df['balance']) == [4]


def test_import_customers_from_csv(empties_manager, app):
    csv = 'name,phone,type,balance,has_mou\nAma Shop,0200,Wholesaler,"1,200",yes\n,,,,\nYaw,,Unknown,,\n'

    response = empties_manager.post('/dashboard/customers/import', data={
        'file': (io.BytesIO(csv.encode()), 'customers.csv'),
    }, content_type='multipart/form-data')

    assert response.status_code == 302
    with app.app_context():
        customers = {c.name: c for c in Customer.query.all()}
        assert set(customers) == {'Ama Shop', 'Yaw'}
        assert customers['Ama Shop'].type_name == 'Wholesaler'
        assert customers['Ama Shop'].balance == 1200
        assert customers['Ama Shop'].has_mou is True
        assert customers['Yaw'].type_name == 'Retailer'
        assert customers['Yaw'].balance == 0


def test_return_empties_updates_balance_and_ground(empties_manager, app):
    with app.app_context():
        customer_id = make_customer('Kofi Stores', balance=-2).id
        beer = make_product('Club Beer', returnable=True, empties=1).id

    response = empties_manager.post('/dashboard/customers/return-empties', data={
        'customer_id': str(customer_id), 'date': TODAY,
        'items-0-product': str(beer), 'items-0-quantity': '6',
    })

    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Customer, customer_id).balance == 4
        assert db.session.get(Product, beer).empties_on_ground == 7
        assert EmptiesLog.query.one().activity == 'customer_empties_return'


def test_return_empties_offers_only_returnable_products(empties_manager, app):
    with app.app_context():
        make_product('Club Beer', returnable=True)
        make_product('Voltic Water', returnable=False)

    page = empties_manager.get('/dashboard/customers/return-empties').get_data(as_text=True)

    assert 'Club Beer' in page
    assert 'Voltic Water' not in page


def test_history_merges_orders_and_empties_newest_first(empties_manager, client, app):
    with app.app_context():
        customer_id = make_customer('Kofi Stores', balance=10).id
        beer = make_product('Club Beer', returnable=True, empties=0).id

    client.get('/logout')
    login(client, app, 'cashier')
    client.post('/dashboard/pos/api/checkout', json={
        'customer_id': customer_id, 'items': [{'product_id': beer, 'quantity': 2}],
    })
    client.post('/dashboard/customers/return-empties', data={
        'customer_id': str(customer_id), 'date': TODAY,
        'items-0-product': str(beer), 'items-0-quantity': '1',
    })

    page = client.get(f'/dashboard/customers/{customer_id}/history').get_data(as_text=True)

    assert page.index('Empties Return') < page.index('Empties for Sale')
    assert 'Order #' in page


def upload(client, content, filename):
    return client.post('/dashboard/customers/import', data={
        'file': (io.BytesIO(content), filename),
    }, content_type='multipart/form-data', follow_redirects=True)


def test_import_rejects_legacy_excel_files(empties_manager, app):
    response = upload(empties_manager, b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1' + b'\0' * 64, 'customers.xls')

    assert response.status_code == 200
    assert b'Upload an .xlsx or .csv file' in response.data
    with app.app_context():
        assert Customer.query.count() == 0


def test_import_reports_unreadable_workbook(empties_manager, app):
    response = upload(empties_manager, b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1' + b'\0' * 64, 'customers.xlsx')

    assert response.status_code == 200
    assert b'Import failed: Could not read customers.xlsx' in response.data
    with app.app_context():
        assert Customer.query.count() == 0


def test_failed_customer_delete_is_rolled_back(empties_manager, app, monkeypatch):
    with app.app_context():
        customer_id = make_customer('Kofi Stores').id
    break_commits(monkeypatch)

    response = empties_manager.post(f'/dashboard/customers/delete/{customer_id}', follow_redirects=True)

    assert b'Could not delete customer' in response.data
    with app.app_context():
        assert db.session.get(Customer, customer_id).deleted_at is None
