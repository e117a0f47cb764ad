from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import relationship
from shopcore.database import Base

# Represents a single line (product + quantity) in a user's cart.
# A user's cart is simply the set of their lines.
class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity >= 1", name="ck_cartitem_quantity"), nullable=False, default=1)
    unit_price_snapshot = Column(Numeric(10, 2), nullable=False) # Unit price at the moment of addition
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")

    __table_args__ = (
        # One line per product in a user's cart; adding again merges quantities
        UniqueConstraint("user_id", "product_id", name="uq_cartitem_user_product"),
    )
