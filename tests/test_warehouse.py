import io
import os
from datetime import date

import pytest

from conftest import break_commits, login, make_customer, make_product
from models import db
from models.breakage import Breakage
from models.inventory_log import InventoryLog
from models.loadout import Loadout
from models.product import Product
from models.receivable import InventoryReceivable

TODAY = date.today().isoformat()


@pytest.fixture
def manager(client, app):
    return login(client, app, 'operations_manager')


def rows(*items, prefix='items'):
    data = {}
    for index, (product_id, quantity) in enumerate(items):
        data[f'{prefix}-{index}-product'] = str(product_id)
        data[f'{prefix}-{index}-quantity'] = str(quantity)
    return data


def test_record_receivable_increases_stock(manager, app):
    with app.app_context():
        beer = make_product(stock=5).id

    response = manager.post('/dashboard/warehouse/receivables/new', data={
        'date': TODAY, 'purchase_order_number': 'PO-77', 'received_by': 'Ama',
        'delivered_by': 'Yaw', 'vehicle_no': 'GR-1234', 'num_of_pallets': '2',
        **rows((beer, 40)),
    })

    assert response.status_code == 302
    with app.app_context():
        receivable = InventoryReceivable.query.one()
        assert receivable.purchase_order_number == 'PO-77'
        assert receivable.num_of_pallets == 2
        assert receivable.purchase_order_img_url is None
        assert db.session.get(Product, beer).quantity == 45
        assert InventoryLog.query.one().type == 'supplier_receipt'

    page = manager.get('/dashboard/warehouse/receivables?q=PO-77').get_data(as_text=True)
    assert 'GR-1234' in page


def test_record_receivable_requires_po_number(manager, app):
    with app.app_context():
        beer = make_product().id

    response = manager.post('/dashboard/warehouse/receivables/new', data={
        'date': TODAY, 'purchase_order_number': '', 'received_by': 'Ama',
        'delivered_by': 'Yaw', 'vehicle_no': 'GR-1', **rows((beer, 4)),
    })

    assert response.status_code == 200
    assert b'Please enter a Purchase Order Number' in response.data
    with app.app_context():
        assert InventoryReceivable.query.count() == 0


def test_receivable_image_is_stored_and_served(manager, app):
    with app.app_context():
        beer = make_product().id

    manager.post('/dashboard/warehouse/receivables/new', data={
        'date': TODAY, 'purchase_order_number': 'PO-1', 'received_by': 'Ama',
        'delivered_by': 'Yaw', 'vehicle_no': 'GR-1', **rows((beer, 1)),
        'purchase_order_image': (io.BytesIO(b'fake-png'), 'po.png'),
    }, content_type='multipart/form-data')

    with app.app_context():
        path = InventoryReceivable.query.one().purchase_order_img_url
    assert path.startswith('receivable-images/') and path.endswith('.png')
    assert os.path.exists(os.path.join(app.config['UPLOAD_FOLDER'], path))
    assert manager.get(f'/uploads/{path}').data == b'fake-png'


def test_breakages_deduct_stock_with_default_reason(manager, app):
    with app.app_context():
        beer = make_product(stock=10).id

    manager.post('/dashboard/warehouse/breakages/new', data={'date': TODAY, **rows((beer, 3))})

    with app.app_context():
        breakage = Breakage.query.one()
        assert (breakage.quantity, breakage.reason) == (3, 'Breakage')
        assert db.session.get(Product, beer).quantity == 7

    page = manager.get('/dashboard/warehouse/breakages').get_data(as_text=True)
    assert 'Total broken: 3' in page


def test_breakage_beyond_stock_is_rejected(manager, app):
    with app.app_context():
        beer = make_product(stock=1).id

    response = manager.post('/dashboard/warehouse/breakages/new', data={'date': TODAY, **rows((beer, 3))})

    assert response.status_code == 200
    assert b'Insufficient stock' in response.data
    with app.app_context():
        assert Breakage.query.count() == 0
        assert db.session.get(Product, beer).quantity == 1


def test_take_stock_sets_counted_quantity(manager, app):
    with app.app_context():
        beer = make_product('Club Beer', stock=10).id
        water = make_product('Voltic Water', stock=10).id

    response = manager.post('/dashboard/warehouse/take-stock', data={
        'date': TODAY, **rows((beer, 6)), **rows((water, 2), prefix='breakage_items'),
    })

    assert response.status_code == 302
    with app.app_context():
        assert db.session.get(Product, beer).quantity == 6
        assert db.session.get(Product, water).quantity == 8
        assert Breakage.query.one().reason == 'Stock take'


def settlement(item_id, sold, returned):
    return {'items-0-item_id': str(item_id), 'items-0-sold': str(sold), 'items-0-returned': str(returned)}


def test_loadout_and_settlement(manager, app):
    with app.app_context():
        vse = make_customer('Ato', type_name='Retailer (VSE)').id
        beer = make_product(stock=30).id

    manager.post('/dashboard/warehouse/loadouts/new', data={'date': TODAY, 'vse_id': str(vse), **rows((beer, 12))})

    with app.app_context():
        loadout = Loadout.query.one()
        loadout_id, item_id = loadout.id, loadout.items[0].id
        assert db.session.get(Product, beer).quantity == 18

    page = manager.get(f'/dashboard/warehouse/loadouts?date={TODAY}').get_data(as_text=True)
    assert 'Ato' in page

    manager.post(f'/dashboard/warehouse/loadouts/{loadout_id}/settle', data=settlement(item_id, 7, 4))

    with app.app_context():
        loadout = db.session.get(Loadout, loadout_id)
        assert (loadout.sold, loadout.returned, loadout.balance) == (7, 4, 1)
        assert db.session.get(Product, beer).quantity == 22


def test_loadout_vse_choices_exclude_other_customers(manager, app):
    with app.app_context():
        make_customer('Ato', type_name='Retailer (VSE)')
        make_customer('Shop Owner')

    page = manager.get('/dashboard/warehouse/loadouts/new').get_data(as_text=True)

    assert 'Ato' in page
    assert 'Shop Owner' not in page


def test_inventory_log_summarises_the_day(manager, app):
    with app.app_context():
        beer = make_product('Club Beer', stock=0).id

    manager.post('/dashboard/warehouse/receivables/new', data={
        'date': TODAY, 'purchase_order_number': 'PO-1', 'received_by': 'Ama',
        'delivered_by': 'Yaw', 'vehicle_no': 'GR-1', **rows((beer, 20)),
    })
    manager.post('/dashboard/warehouse/breakages/new', data={'date': TODAY, **rows((beer, 2))})

    page = manager.get(f'/dashboard/warehouse/inventory-log?date={TODAY}').get_data(as_text=True)

    assert 'Club Beer' in page
    assert 'PO PO-1' in page
    assert 'balance 18' in page


def test_stock_report_statuses(manager, app):
    with app.app_context():
        make_product('Empty Shelf', stock=0)
        make_product('Few Left', stock=5)
        make_product('Plenty', stock=80)

    page = manager.get('/dashboard/warehouse/stock-report').get_data(as_text=True)

    assert '>out<' in page
    assert '>low<' in page
    assert '>good<' in page


def test_products_crud(manager, app):
    response = manager.post('/dashboard/warehouse/products/add', data={
        'sku_name': 'Club Beer', 'code_name': 'CB625', 'retail_price': '100', 'wholesale_price': '90',
        'returnable': 'y',
    })
    assert response.status_code == 302

    with app.app_context():
        product = Product.query.one()
        assert product.returnable is True
        product_id = product.id

    manager.post(f'/dashboard/warehouse/products/edit/{product_id}', data={
        'sku_name': 'Club Beer 625ml', 'code_name': 'CB625', 'retail_price': '110',
    })
    manager.post(f'/dashboard/warehouse/products/delete/{product_id}')

    with app.app_context():
        product = db.session.get(Product, product_id)
        assert product.sku_name == 'Club Beer 625ml'
        assert product.retail_price == 110
        assert product.deleted_at is not None
    assert b'No products found' in manager.get('/dashboard/warehouse/products/').data


def test_product_form_errors_are_shown(manager):
    response = manager.post('/dashboard/warehouse/products/add', data={'sku_name': 'X'})
    assert b'Product name must be at least 2 characters' in response.data


def receivable_data(*items, **extra):
    return {
        'date': TODAY, 'purchase_order_number': 'PO-5', 'received_by': 'Ama',
        'delivered_by': 'Yaw', 'vehicle_no': 'GR-5', **rows(*items), **extra,
    }


def test_add_item_button_renders_another_picker_row(manager, app):
    with app.app_context():
        ids = [make_product(f'Product {n}').id for n in range(7)]

    response = manager.post('/dashboard/warehouse/receivables/new',
                            data=receivable_data(*[(product_id, 2) for product_id in ids[:5]], add_row='items'))

    page = response.get_data(as_text=True)
    assert response.status_code == 200
    assert 'name="items-5-product"' in page
    assert 'Add item' in page
    with app.app_context():
        assert InventoryReceivable.query.count() == 0


def test_receivable_accepts_more_rows_than_the_picker_shows(manager, app):
    with app.app_context():
        ids = [make_product(f'Product {n}').id for n in range(7)]

    response = manager.post('/dashboard/warehouse/receivables/new',
                            data=receivable_data(*[(product_id, 3) for product_id in ids]))

    assert response.status_code == 302
    with app.app_context():
        assert len(InventoryReceivable.query.one().items) == 7
        assert all(db.session.get(Product, product_id).quantity == 3 for product_id in ids)


def test_settlement_rejects_non_numeric_and_negative_entries(manager, app):
    with app.app_context():
        vse = make_customer('Ato', type_name='Retailer (VSE)')
        beer = make_product(stock=30)
        loadout = Loadout.record(vse, [(beer, 10)], date.today())
        db.session.commit()
        loadout_id, item_id = loadout.id, loadout.items[0].id

    response = manager.post(f'/dashboard/warehouse/loadouts/{loadout_id}/settle',
                            data={**settlement(item_id, 2, 1), 'items-0-sold': 'abc'})
    assert response.status_code == 200
    assert b'Not a valid integer value' in response.data

    response = manager.post(f'/dashboard/warehouse/loadouts/{loadout_id}/settle', data=settlement(item_id, -1, 0))
    assert b'Sold cannot be negative' in response.data

    response = manager.post(f'/dashboard/warehouse/loadouts/{loadout_id}/settle', data=settlement(item_id, 8, 5))
    assert b'sold and returned cannot exceed 10' in response.data

    with app.app_context():
        item = db.session.get(Loadout, loadout_id).items[0]
        assert (item.quantity_sold, item.quantity_returned) == (0, 0)


def test_settle_page_shows_current_figures(manager, app):
    with app.app_context():
        vse = make_customer('Ato', type_name='Retailer (VSE)')
        beer = make_product('Club Beer', stock=30)
        loadout = Loadout.record(vse, [(beer, 10)], date.today())
        db.session.commit()
        loadout.items[0].quantity_sold = 4
        db.session.commit()
        loadout_id = loadout.id

    page = manager.get(f'/dashboard/warehouse/loadouts/{loadout_id}/settle').get_data(as_text=True)

    assert 'Club Beer' in page
    assert 'name="items-0-sold"' in page
    assert 'value="4"' in page


def test_failed_product_delete_is_rolled_back(manager, app, monkeypatch):
    with app.app_context():
        product_id = make_product('Club Beer').id
    break_commits(monkeypatch)

    response = manager.post(f'/dashboard/warehouse/products/delete/{product_id}', follow_redirects=True)

    assert b'Could not delete product' in response.data
    with app.app_context():
        assert db.session.get(Product, product_id).deleted_at is None
