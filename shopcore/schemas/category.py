from decimal import Decimal

from pydantic import Field
from typing import Optional, List
from datetime import datetime

from shopcore.schemas.base import ORMBase, PayloadBase


# Request schema for creating a category
class CategoryCreate(PayloadBase):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = None


# Partial update; activation goes through toggle
class CategoryUpdate(PayloadBase):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None


class SubcategoryCreate(PayloadBase):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = None


class SubcategoryUpdate(PayloadBase):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    category_id: Optional[int] = Field(None, gt=0)


class SubcategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    category_id: int
    active: bool


class CategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None


class CategoryDetail(CategoryOut):
    subcategories: List[SubcategoryOut] = []


# Result of toggling a node: new state plus how many descendants were switched off
class ToggleResult(ORMBase):
    id: int
    active: bool
    affected_subcategories: int = 0
    affected_products: int = 0


# Counters for admin dashboards
class NodeStats(ORMBase):
    id: int
    name: str
    active: bool
    subcategories: int = 0
    products: int = 0
    active_products: int = 0
    inactive_products: int = 0
    total_stock: int = 0
    inventory_value: Decimal = Decimal("0.00")
