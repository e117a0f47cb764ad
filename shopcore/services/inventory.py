"""Stock primitives.

``reserve`` and ``restock`` are the only code paths that move stock up or
down; checkout and cancellation call through them. Each one is a single
conditional UPDATE, so two callers racing on the same product are serialized
by the database row rather than by whatever value they read earlier.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key

from shopcore.errors import InsufficientStock, NotFound, ValidationError
from shopcore.models.product import Product
from shopcore.models.stock import MovementType, StockMovement

logger = logging.getLogger(__name__)


def _require_quantity(qty, *, allow_zero: bool = False) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError.single("qty", "must be an integer")
    if qty < 0 or (qty == 0 and not allow_zero):
        raise ValidationError.single("qty", "must be >= 0" if allow_zero else "must be >= 1")
    return qty


class InventoryLedger:
    def __init__(self, db: Session):
        self.db = db

    # ---- reads ----

    def available(self, product_id: int) -> int:
        stock = self.db.execute(
            select(Product.stock).where(Product.id == product_id)
        ).scalar_one_or_none()
        if stock is None:
            raise NotFound("Product", product_id)
        return stock

    def has_stock(self, product_id: int, qty: int) -> bool:
        return self.available(product_id) >= _require_quantity(qty)

    def movements(self, product_id: int, page: int = 1, page_size: int = 20) -> Tuple[List[StockMovement], int]:
        self.available(product_id)
        base = select(StockMovement).where(StockMovement.product_id == product_id)
        total = self.db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        rows = self.db.execute(
            base.order_by(StockMovement.id.desc()).offset((page - 1) * page_size).limit(page_size)
        ).scalars().all()
        return rows, total

    # ---- mutations ----

    def reserve(self, product_id: int, qty: int, *, order_id: Optional[int] = None,
                user_id: Optional[int] = None, reason: Optional[str] = None) -> int:
        """Debit ``qty`` units if available; returns the new stock level."""
        qty = _require_quantity(qty)
        self.db.flush()

        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= qty)
            .values(stock=Product.stock - qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.available(product_id)
            logger.info("Reserve of %s x product %s refused, %s in stock", qty, product_id, available)
            raise InsufficientStock(product_id, available, qty)

        return self._record(product_id, -qty, MovementType.RESERVE, order_id, user_id, reason)

    def restock(self, product_id: int, qty: int, *, order_id: Optional[int] = None,
                user_id: Optional[int] = None, reason: Optional[str] = None) -> int:
        """Credit ``qty`` units; there is no upper bound."""
        qty = _require_quantity(qty)
        self.db.flush()

        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("Product", product_id)

        return self._record(product_id, qty, MovementType.RESTOCK, order_id, user_id, reason)

    def set_stock(self, product_id: int, qty: int, *, user_id: Optional[int] = None,
                  reason: Optional[str] = None) -> int:
        """Administrative overwrite of the stock level."""
        qty = _require_quantity(qty, allow_zero=True)
        self.db.flush()

        # Lock the row so the delta recorded in the ledger is exact
        current = self.db.execute(
            select(Product.stock).where(Product.id == product_id).with_for_update()
        ).scalar_one_or_none()
        if current is None:
            raise NotFound("Product", product_id)

        self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=qty)
            .execution_options(synchronize_session=False)
        )
        return self._record(product_id, qty - current, MovementType.ADJUSTMENT, None, user_id, reason)

    def _record(self, product_id, delta, kind, order_id, user_id, reason) -> int:
        balance = self.available(product_id)
        self.db.add(StockMovement(
            product_id=product_id, qty=delta, balance=balance, type=kind,
            order_id=order_id, user_id=user_id, reason=reason,
        ))

        # Keep an already-loaded Product in step with the row we just wrote
        loaded = self.db.identity_map.get(identity_key(Product, product_id))
        if loaded is not None:
            set_committed_value(loaded, "stock", balance)

        logger.debug("Stock of product %s %s by %s -> %s", product_id, kind.value, delta, balance)
        return balance
