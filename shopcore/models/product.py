from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from shopcore.database import Base

# Model Product
# Leaf of the catalog tree. Stock is only ever changed through the
# inventory ledger; the check constraints back up the non-negativity rule.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)

    price = Column(Numeric(10, 2), CheckConstraint("price >= 0", name="ck_product_price"), nullable=False)
    stock = Column(Integer, CheckConstraint("stock >= 0", name="ck_product_stock"), nullable=False, default=0)

    # Opaque reference resolved by the file storage (e.g. "3f2c...e1.jpg")
    image_ref = Column(String, nullable=True)

    subcategory_id = Column(Integer, ForeignKey("subcategories.id", ondelete="RESTRICT"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    subcategory = relationship("Subcategory", back_populates="products")
    category = relationship("Category", back_populates="products")
