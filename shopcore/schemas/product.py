from decimal import Decimal
from pydantic import Field
from typing import Optional, List

from shopcore.schemas.base import ORMBase, PayloadBase


# Schema for creating a new product; parents are given separately
class ProductCreate(PayloadBase):
    name: str = Field(min_length=3, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    image_ref: Optional[str] = None


# Schema for partial product updates. Stock is managed by the inventory ledger.
class ProductUpdate(PayloadBase):
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_ref: Optional[str] = None
    subcategory_id: Optional[int] = Field(None, gt=0)
    category_id: Optional[int] = Field(None, gt=0)


# Full product representation
class ProductOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    image_ref: Optional[str] = None
    image_url: Optional[str] = None
    subcategory_id: int
    category_id: int
    active: bool


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
