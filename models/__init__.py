from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from .user import Profile
from .customer import CustomerType, Customer
from .product import Product
from .stock import WarehouseStock, EmptiesStock
from .inventory_log import InventoryLog
from .sale import OrderType, Order, Sale
from .warehouse_order import WarehouseOrder, WarehouseOrderItem
from .empties import EmptiesLog, EmptiesLogDetail
from .receivable import InventoryReceivable, InventoryReceivableItem
from .loadout import Loadout, LoadoutItem
from .breakage import Breakage
