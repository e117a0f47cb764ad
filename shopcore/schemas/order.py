from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from shopcore.models.order import OrderStatus
from shopcore.schemas.base import ORMBase, PayloadBase


# Output schema for an individual order line item
class OrderItemOut(ORMBase):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


# Input schema for checking out the current cart
class CheckoutPayload(PayloadBase):
    shipping_address: str = Field(min_length=1)
    contact_phone: str = Field(min_length=1, max_length=20)
    notes: Optional[str] = None


# Output schema representing the full order details
class OrderResponse(ORMBase):
    id: int
    user_id: int
    status: OrderStatus
    total: Decimal
    shipping_address: str
    contact_phone: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    items: List[OrderItemOut]
    allowed_transitions: List[OrderStatus] = []


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


# Schema for updating order status
class OrderStatusPatch(PayloadBase):
    status: OrderStatus


class BestSeller(BaseModel):
    product_id: int
    product_name: str
    quantity_sold: int
