import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, func
from sqlalchemy.orm import relationship
from shopcore.database import Base

class MovementType(str, enum.Enum):
    RESERVE = "RESERVE"
    RESTOCK = "RESTOCK"
    ADJUSTMENT = "ADJUSTMENT"

# One row per stock mutation, written in the same transaction as the change
class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)

    # Signed quantity: negative for reservations, positive for restocks
    qty = Column(Integer, nullable=False)
    # Stock level right after the movement
    balance = Column(Integer, nullable=False)

    type = Column(Enum(MovementType, native_enum=False), nullable=False)
    reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")
