from .auth import User, SessionToken
from .catalog import Category, Product
from .orders import Order, OrderItem

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product',
    'Order', 'OrderItem',
]
