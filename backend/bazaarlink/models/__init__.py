from .accounts import User, SessionToken
from .catalog import Product, StockHistoryEntry
from .orders import Order, OrderLineItem
from .reviews import Review

__all__ = [
    'User', 'SessionToken',
    'Product', 'StockHistoryEntry',
    'Order', 'OrderLineItem',
    'Review',
]
