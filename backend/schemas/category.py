# backend/schemas/category.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None


class CategoryOut(CategoryBase):
    id: int
    created_at: Optional[datetime] = None
    product_count: int = 0

    model_config = ConfigDict(from_attributes=True)
