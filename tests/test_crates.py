from datetime import date

import pytest

from conftest import login, make_customer, make_product
from models import db
from models.empties import EmptiesLog
from models.product import Product
from models.receivable import InventoryReceivable

TODAY = date.today()


@pytest.fixture
def empties_manager(client, app):
    return login(client, app, 'empties_manager')


def return_data(*items, **fields):
    data = {'date': TODAY.isoformat(), 'vehicle_no': 'GT-55', 'returned_by': 'Kwame',
            'num_of_pallets': '1', **fields}
    for index, (product_id, quantity) in enumerate(items):
        data[f'items-{index}-product'] = str(product_id)
        data[f'items-{index}-quantity'] = str(quantity)
    return data


def test_overview_counts_crates(empties_manager, app):
    with app.app_context():
        make_product('Club Beer', returnable=True, stock=10, empties=5)
        make_product('Voltic Water', returnable=False, stock=99)
        make_customer('Owes Crates', balance=-3)
        make_customer('Has Credit', balance=4)

    page = empties_manager.get('/dashboard/crates/').get_data(as_text=True)

    assert 'Voltic Water' not in page
    assert 'fs-4">15<' in page
    assert 'fs-4">3<' in page
    assert 'fs-4">18<' in page


def test_return_crates_to_supplier(empties_manager, app):
    with app.app_context():
        beer = make_product('Club Beer', returnable=True, empties=10).id

    response = empties_manager.post('/dashboard/crates/return', data=return_data((beer, 4)))

    assert response.status_code == 302
    with app.app_context():
        log = EmptiesLog.query.one()
        assert (log.activity, log.total_quantity, log.vehicle_no) == ('empties_to_supplier', 4, 'GT-55')
        assert db.session.get(Product, beer).empties_on_ground == 6

    page = empties_manager.get('/dashboard/crates/returned').get_data(as_text=True)
    assert 'Total returned: 4' in page


def test_return_more_crates_than_on_ground_is_rejected(empties_manager, app):
    with app.app_context():
        beer = make_product('Club Beer', returnable=True, empties=2).id

    response = empties_manager.post('/dashboard/crates/return', data=return_data((beer, 5)))

    assert response.status_code == 200
    assert b'Not enough empty crates' in response.data
    with app.app_context():
        assert EmptiesLog.query.count() == 0
        assert db.session.get(Product, beer).empties_on_ground == 2


def test_return_crates_requires_vehicle(empties_manager, app):
    with app.app_context():
        beer = make_product(returnable=True, empties=2).id

    response = empties_manager.post('/dashboard/crates/return', data=return_data((beer, 1), vehicle_no=''))

    assert response.status_code == 200
    with app.app_context():
        assert EmptiesLog.query.count() == 0


def test_deleting_a_return_puts_crates_back(empties_manager, app):
    with app.app_context():
        beer = make_product(returnable=True, empties=10).id
    empties_manager.post('/dashboard/crates/return', data=return_data((beer, 4)))
    with app.app_context():
        log_id = EmptiesLog.query.one().id

    empties_manager.post(f'/dashboard/crates/returned/delete/{log_id}')

    with app.app_context():
        assert EmptiesLog.query.count() == 0
        assert db.session.get(Product, beer).empties_on_ground == 10


def test_customer_logs_cannot_be_deleted_as_returns(empties_manager, app):
    with app.app_context():
        customer = make_customer(balance=0)
        beer = make_product(returnable=True)
        log = EmptiesLog.record_customer_return(customer, [(beer, 2)], TODAY)
        db.session.commit()
        log_id = log.id

    response = empties_manager.post(f'/dashboard/crates/returned/delete/{log_id}', follow_redirects=True)

    assert b'Only supplier returns can be deleted here' in response.data
    with app.app_context():
        assert db.session.get(EmptiesLog, log_id) is not None


def delivery(product, qty):
    receivable = InventoryReceivable.record(
        [(product, qty)], date=TODAY, purchase_order_number='PO-9', received_by='Ama',
        delivered_by='Yaw', vehicle_no='GR-9',
    )
    db.session.commit()
    return receivable.id


def test_brought_in_lists_deliveries_and_delete_reverses_stock(empties_manager, app):
    with app.app_context():
        beer = make_product('Club Beer', stock=3)
        beer_id = beer.id
        receivable_id = delivery(beer, 12)

    page = empties_manager.get('/dashboard/crates/brought-in').get_data(as_text=True)
    assert 'PO-9' in page
    assert 'Total stock in warehouse: 15' in page

    empties_manager.post(f'/dashboard/crates/brought-in/delete/{receivable_id}')

    with app.app_context():
        assert db.session.get(InventoryReceivable, receivable_id) is None
        assert db.session.get(Product, beer_id).quantity == 3


def test_delivery_already_sold_cannot_be_deleted(empties_manager, app):
    with app.app_context():
        beer = make_product('Club Beer', stock=0)
        beer_id = beer.id
        receivable_id = delivery(beer, 12)
        beer.stock.quantity = 5
        db.session.commit()

    response = empties_manager.post(f'/dashboard/crates/brought-in/delete/{receivable_id}',
                                    follow_redirects=True)

    assert b'Insufficient stock' in response.data
    with app.app_context():
        assert db.session.get(InventoryReceivable, receivable_id) is not None
        assert db.session.get(Product, beer_id).quantity == 5
