# backend/schemas/product.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Shared base attributes for product entities
class ProductBase(ORMBase):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    unit: str = Field("un", min_length=1, max_length=30)
    min_quantity: float = Field(0, ge=0)
    category_id: Optional[int] = None


# Schema for creating a new product; `quantity` is the opening stock
class ProductCreate(ProductBase):
    quantity: float = Field(0, ge=0)


class ProductEditRequest(ORMBase):
    """Schema for PATCH requests - all fields optional. A new quantity is booked as an adjustment."""
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    unit: Optional[str] = Field(None, min_length=1, max_length=30)
    quantity: Optional[float] = Field(None, ge=0)
    min_quantity: Optional[float] = Field(None, ge=0)
    category_id: Optional[int] = None


# Full product representation including ID and computed display fields
class ProductOut(ProductBase):
    id: int
    quantity: float
    initial_quantity: float = 0
    category_name: Optional[str] = None
    unit_label: str
    quantity_label: str
    related_units: List[str] = []
    low_stock: bool = False
    created_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
