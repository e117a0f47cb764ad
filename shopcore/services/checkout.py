"""Cart -> Order conversion.

The whole conversion is one transaction: order row, order lines, stock
reservations and the emptied cart commit together or not at all. Stock is
re-checked here against current values, never against what the cart saw.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from shopcore.database import unit_of_work
from shopcore.errors import CheckoutFailed, EmptyCart, InsufficientStock, NotFound, ProductInactive, ShopError
from shopcore.models.cart import CartItem
from shopcore.models.order import Order, OrderItem, OrderStatus
from shopcore.models.product import Product
from shopcore.schemas.base import parse
from shopcore.schemas.order import CheckoutPayload
from shopcore.services.cart import Cart
from shopcore.services.inventory import InventoryLedger
from shopcore.utils.audit import write_log
from shopcore.utils.money import to_money

logger = logging.getLogger(__name__)


class CheckoutTransaction:
    def __init__(self, db: Session, cart: Optional[Cart] = None, ledger: Optional[InventoryLedger] = None):
        self.db = db
        self.cart = cart or Cart(db)
        self.ledger = ledger or InventoryLedger(db)

    def checkout(self, user_id: int, shipping_address: str, contact_phone: str, notes: Optional[str] = None) -> Order:
        payload = parse(CheckoutPayload, {
            "shipping_address": shipping_address,
            "contact_phone": contact_phone,
            "notes": notes,
        })

        with unit_of_work(self.db):
            self.cart.require_user(user_id)
            lines = self.cart.lines(user_id, for_update=True)
            if not lines:
                raise EmptyCart(user_id)

            failures = self._validate(lines)
            if failures:
                raise CheckoutFailed(failures)

            order = self._create_order(user_id, payload, lines)
            self._reserve(order, lines)
            self.cart.clear(user_id)

            write_log(self.db, user_id=user_id, action="ORDER_CHECKOUT", resource="orders",
                      resource_id=order.id, meta={"lines": len(order.items), "total": str(order.total)})

        logger.info("Order %s placed by user %s, total %s", order.id, user_id, order.total)
        return order

    def _validate(self, lines: List[CartItem]) -> List[ShopError]:
        failures: List[ShopError] = []
        for line in lines:
            # Current row values, not whatever the session cached earlier
            product = self.db.get(Product, line.product_id, populate_existing=True)
            if product is None:
                failures.append(NotFound("Product", line.product_id))
            elif not product.active:
                failures.append(ProductInactive(product.id))
            elif product.stock < line.quantity:
                failures.append(InsufficientStock(product.id, product.stock, line.quantity))
        return failures

    def _create_order(self, user_id: int, payload: CheckoutPayload, lines: List[CartItem]) -> Order:
        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING,
            shipping_address=payload.shipping_address,
            contact_phone=payload.contact_phone,
            notes=payload.notes,
            total=Decimal("0.00"),
        )
        total = Decimal("0.00")
        for line in lines:
            # Price is captured afresh at checkout time
            item = OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_snapshot=to_money(line.product.price),
            )
            item.subtotal = to_money(item.compute_subtotal())
            order.items.append(item)
            total += item.subtotal

        order.total = to_money(total)
        self.db.add(order)
        self.db.flush()
        return order

    def _reserve(self, order: Order, lines: List[CartItem]) -> None:
        for line in lines:
            try:
                self.ledger.reserve(line.product_id, line.quantity, order_id=order.id, user_id=order.user_id,
                                    reason=f"Order #{order.id}")
            except InsufficientStock as e:
                # Lost a race with another checkout between validation and debit
                raise CheckoutFailed([e]) from e
