"""Order status machine.

    pending -> paid | cancelled
    paid    -> shipped | cancelled
    shipped -> delivered

delivered and cancelled are terminal. Cancelling puts back exactly the
quantities checkout reserved, in the same transaction as the status change.
"""
import logging
from typing import List, Optional, Tuple, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from shopcore.database import unit_of_work
from shopcore.errors import IllegalTransition, NotFound, UseCancelInstead, ValidationError
from shopcore.models.order import ALLOWED_TRANSITIONS, Order, OrderItem, OrderStatus
from shopcore.models.product import Product
from shopcore.schemas.order import BestSeller
from shopcore.services.inventory import InventoryLedger
from shopcore.utils.audit import write_log
from shopcore.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

# Timestamp written the first time an order enters a state
STATUS_TIMESTAMPS = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
}


def _as_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError.single("status", f"must be one of: {allowed}") from None


class OrderLifecycle:
    def __init__(self, db: Session, ledger: Optional[InventoryLedger] = None, clock: Optional[Clock] = None):
        self.db = db
        self.ledger = ledger or InventoryLedger(db)
        self.clock = clock or SystemClock()

    # ---- reads ----

    def get_order(self, order_id: int, user_id: Optional[int] = None) -> Order:
        """Fetch an order; when ``user_id`` is given the order must belong to that user."""
        order = self.db.execute(
            select(Order).options(selectinload(Order.items).joinedload(OrderItem.product)).where(Order.id == order_id)
        ).scalar_one_or_none()
        if order is None or (user_id is not None and order.user_id != user_id):
            raise NotFound("Order", order_id)
        return order

    def list_orders(self, user_id: Optional[int] = None, status: Optional[Union[str, OrderStatus]] = None,
                    page: int = 1, page_size: int = 10) -> Tuple[List[Order], int]:
        query = select(Order)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        if status is not None:
            query = query.where(Order.status == _as_status(status))

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = self.db.execute(
            query.options(selectinload(Order.items).joinedload(OrderItem.product))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return list(rows), total

    def allowed_transitions(self, order: Order) -> List[OrderStatus]:
        return sorted(ALLOWED_TRANSITIONS[OrderStatus(order.status)], key=lambda s: list(OrderStatus).index(s))

    def best_sellers(self, limit: int = 10) -> List[BestSeller]:
        sold = func.sum(OrderItem.quantity).label("sold")
        rows = self.db.execute(
            select(OrderItem.product_id, Product.name, sold)
            .join(Order, Order.id == OrderItem.order_id)
            .join(Product, Product.id == OrderItem.product_id)
            .where(Order.status != OrderStatus.CANCELLED)
            .group_by(OrderItem.product_id, Product.name)
            .order_by(sold.desc(), OrderItem.product_id.asc())
            .limit(limit)
        ).all()
        return [BestSeller(product_id=pid, product_name=name, quantity_sold=qty) for pid, name, qty in rows]

    # ---- transitions ----

    def transition(self, order_id: int, new_status: Union[str, OrderStatus], actor_id: Optional[int] = None) -> Order:
        target = _as_status(new_status)

        with unit_of_work(self.db):
            order = self._locked(order_id)
            current = OrderStatus(order.status)
            if not current.can_transition_to(target):
                raise IllegalTransition(current.value, target.value)

            if target is OrderStatus.CANCELLED:
                self._restitute(order)

            order.status = target
            stamp = STATUS_TIMESTAMPS.get(target)
            if stamp and getattr(order, stamp) is None:
                setattr(order, stamp, self.clock.now())

            self.db.flush()
            write_log(self.db, user_id=actor_id, action="ORDER_STATUS_CHANGE", resource="orders",
                      resource_id=order.id, meta={"old": current.value, "new": target.value})

        logger.info("Order %s: %s -> %s", order_id, current.value, target.value)
        return order

    def pay(self, order_id: int, actor_id: Optional[int] = None) -> Order:
        return self.transition(order_id, OrderStatus.PAID, actor_id)

    def ship(self, order_id: int, actor_id: Optional[int] = None) -> Order:
        return self.transition(order_id, OrderStatus.SHIPPED, actor_id)

    def deliver(self, order_id: int, actor_id: Optional[int] = None) -> Order:
        return self.transition(order_id, OrderStatus.DELIVERED, actor_id)

    def cancel(self, order_id: int, actor_id: Optional[int] = None) -> Order:
        return self.transition(order_id, OrderStatus.CANCELLED, actor_id)

    def delete(self, order_id: int) -> None:
        raise UseCancelInstead(order_id)

    # ---- helpers ----

    def _locked(self, order_id: int) -> Order:
        order = self.db.execute(
            select(Order).where(Order.id == order_id).with_for_update().execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise NotFound("Order", order_id)
        return order

    def _restitute(self, order: Order) -> None:
        for item in order.items:
            self.ledger.restock(item.product_id, item.quantity, order_id=order.id, user_id=order.user_id,
                                reason=f"Order #{order.id} cancelled")
