from shopcore.models.users import User
from shopcore.models.category import Category, Subcategory
from shopcore.models.product import Product
from shopcore.models.cart import CartItem
from shopcore.models.order import Order, OrderItem, OrderStatus, ALLOWED_TRANSITIONS
from shopcore.models.stock import StockMovement, MovementType
from shopcore.models.log import AuditEntry

__all__ = [
    "User",
    "Category",
    "Subcategory",
    "Product",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "ALLOWED_TRANSITIONS",
    "StockMovement",
    "MovementType",
    "AuditEntry",
]
