from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional

from shopcore.models.stock import MovementType
from shopcore.schemas.base import PayloadBase

# Administrative overwrite of a product's stock
class StockSet(PayloadBase):
    qty: int = Field(ge=0)
    reason: Optional[str] = None

# Incoming delivery for a single product
class StockRestock(PayloadBase):
    qty: int = Field(gt=0)
    reason: Optional[str] = None

# Schema for returning stock movement details
class StockMovementResponse(BaseModel):
    id: int
    product_id: int
    qty: int
    balance: int
    type: MovementType
    reason: Optional[str] = None
    order_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# Paginated response for stock movement history
class StockMovementPage(BaseModel):
    items: List[StockMovementResponse]
    total: int
    page: int
    page_size: int

class StockLevel(BaseModel):
    product_id: int
    stock: int
