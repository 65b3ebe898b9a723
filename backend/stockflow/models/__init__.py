from .auth import User, SessionToken
from .profile import ShopProfile, Employee, Unit
from .inventory import Product, IncomingStockLog, OutgoingStockLog, UnitSnapshot

__all__ = [
    'User', 'SessionToken',
    'ShopProfile', 'Employee', 'Unit',
    'Product', 'IncomingStockLog', 'OutgoingStockLog', 'UnitSnapshot',
]
