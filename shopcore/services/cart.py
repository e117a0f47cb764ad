"""Per-user cart.

The cart checks stock but never holds it: a successful add_item says the
units were available at that moment, nothing more. Stock is committed only
by checkout.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete as sql_delete, select
from sqlalchemy.orm import Session, joinedload

from shopcore.database import unit_of_work
from shopcore.errors import InsufficientStock, NotFound, ProductInactive
from shopcore.models.cart import CartItem
from shopcore.models.product import Product
from shopcore.models.users import User
from shopcore.schemas.base import parse
from shopcore.schemas.cart import CartAddItem, CartItemOut, CartOut, CartSummary, CartUpdateItem
from shopcore.utils.money import to_money

logger = logging.getLogger(__name__)


class Cart:
    def __init__(self, db: Session):
        self.db = db

    # ---- reads ----

    def lines(self, user_id: int, *, for_update: bool = False) -> List[CartItem]:
        query = (
            select(CartItem)
            .options(joinedload(CartItem.product))
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.id.asc())
        )
        if for_update:
            query = query.with_for_update(of=CartItem)
        return list(self.db.execute(query).scalars().unique())

    def get_cart(self, user_id: int) -> CartOut:
        items = []
        total_quantity = 0
        total = Decimal("0.00")
        for line in self.lines(user_id):
            line_total = to_money(line.unit_price_snapshot * line.quantity)
            total += line_total
            total_quantity += line.quantity
            items.append(CartItemOut(
                id=line.id,
                product_id=line.product_id,
                name=line.product.name if line.product else "",
                qty=line.quantity,
                unit_price=to_money(line.unit_price_snapshot),
                line_total=line_total,
                available_stock=line.product.stock if line.product else 0,
                product_active=bool(line.product and line.product.active),
            ))
        return CartOut(
            user_id=user_id,
            items=items,
            summary=CartSummary(lines=len(items), total_quantity=total_quantity, total=to_money(total)),
        )

    def total(self, user_id: int) -> Decimal:
        """Sum of snapshot price x quantity; read only."""
        rows = self.db.execute(
            select(CartItem.unit_price_snapshot, CartItem.quantity).where(CartItem.user_id == user_id)
        ).all()
        return to_money(sum((price * qty for price, qty in rows), Decimal("0")))

    # ---- mutations ----

    def add_item(self, user_id: int, product_id: int, qty: int = 1, refresh_price: bool = False) -> CartItem:
        payload = parse(CartAddItem, {"product_id": product_id, "qty": qty, "refresh_price": refresh_price})

        with unit_of_work(self.db):
            self.require_user(user_id)
            product = self._sellable_product(payload.product_id)
            line = self._line(user_id, payload.product_id)

            requested = payload.qty + (line.quantity if line else 0)
            if requested > product.stock:
                raise InsufficientStock(product.id, product.stock, requested)

            if line:
                line.quantity = requested
                if payload.refresh_price:
                    line.unit_price_snapshot = product.price
            else:
                # Save price snapshot for consistency with later price changes
                line = CartItem(
                    user_id=user_id,
                    product_id=product.id,
                    quantity=payload.qty,
                    unit_price_snapshot=product.price,
                )
                self.db.add(line)
            self.db.flush()

        logger.debug("User %s cart: product %s -> %s units", user_id, product_id, line.quantity)
        return line

    def update_quantity(self, user_id: int, product_id: int, qty: int) -> CartItem:
        payload = parse(CartUpdateItem, {"qty": qty})

        with unit_of_work(self.db):
            line = self._line(user_id, product_id)
            if line is None:
                raise NotFound("Cart item", product_id)

            product = self._sellable_product(product_id)
            if payload.qty > product.stock:
                raise InsufficientStock(product.id, product.stock, payload.qty)

            line.quantity = payload.qty
            self.db.flush()
        return line

    def remove_item(self, user_id: int, product_id: int) -> None:
        with unit_of_work(self.db):
            line = self._line(user_id, product_id)
            if line is None:
                raise NotFound("Cart item", product_id)
            self.db.delete(line)

    def clear(self, user_id: int) -> int:
        with unit_of_work(self.db):
            result = self.db.execute(
                sql_delete(CartItem)
                .where(CartItem.user_id == user_id)
                .execution_options(synchronize_session="fetch")
            )
        return result.rowcount

    # ---- helpers ----

    def require_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def _line(self, user_id: int, product_id: int) -> Optional[CartItem]:
        return self.db.execute(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        ).scalar_one_or_none()

    def _sellable_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id, populate_existing=True)
        if product is None:
            raise NotFound("Product", product_id)
        if not product.active:
            raise ProductInactive(product_id)
        return product
