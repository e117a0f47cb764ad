from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List

from shopcore.schemas.base import PayloadBase

# Request schema for adding an item to the cart
class CartAddItem(PayloadBase):
    product_id: int = Field(gt=0)
    qty: int = Field(default=1, ge=1)
    refresh_price: bool = False

# Request schema for updating cart item quantity
class CartUpdateItem(PayloadBase):
    qty: int = Field(ge=1)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    product_id: int
    name: str
    qty: int
    unit_price: Decimal
    line_total: Decimal
    available_stock: int
    product_active: bool

# Cart totals
class CartSummary(BaseModel):
    lines: int
    total_quantity: int
    total: Decimal

# Response schema for the entire cart
class CartOut(BaseModel):
    user_id: int
    items: List[CartItemOut]
    summary: CartSummary
