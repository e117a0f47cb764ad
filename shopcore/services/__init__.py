from shopcore.services.catalog import CatalogHierarchy
from shopcore.services.inventory import InventoryLedger
from shopcore.services.cart import Cart
from shopcore.services.checkout import CheckoutTransaction
from shopcore.services.orders import OrderLifecycle

__all__ = [
    "CatalogHierarchy",
    "InventoryLedger",
    "Cart",
    "CheckoutTransaction",
    "OrderLifecycle",
]
