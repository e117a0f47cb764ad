from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, func
from shopcore.database import Base

# One row per business event (catalog edit, checkout, status change, stock adjustment).
# Written in the same transaction as the change it describes.
class AuditEntry(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Null for system actions
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(50), nullable=False, index=True)     # e.g. ORDER_CHECKOUT
    resource = Column(String(50), nullable=False, index=True)   # table-ish name: products, orders
    resource_id = Column(Integer, nullable=True, index=True)
    status = Column(String(20), nullable=False, default="SUCCESS")

    meta = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditEntry {self.action} {self.resource}#{self.resource_id}>"
