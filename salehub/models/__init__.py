# 按照依赖顺序导入
from .base import BaseModel, utcnow
from .auth import User, Role, Address
from .catalog import Shop, Item, CartItem
from .voucher import Voucher
from .trade import Order, OrderShop, OrderItem, OrderHistory, CancelRequest
from .returns import ReturnOrder, ReturnOrderItem
from .stock import StockLog
from .finance import Transaction
