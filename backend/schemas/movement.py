# backend/schemas/movement.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.movement import MovementType


# Base schema for stock movement data
class MovementBase(BaseModel):
    product_id: int
    type: MovementType
    quantity: float = Field(gt=0)
    # "default" or empty means the product's own unit
    unit: Optional[str] = None
    employee_id: Optional[int] = None
    notes: Optional[str] = None


class MovementCreate(MovementBase):
    pass


# Partial edit; the product cannot be changed
class MovementUpdate(BaseModel):
    type: Optional[MovementType] = None
    quantity: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = None
    employee_id: Optional[int] = None
    notes: Optional[str] = None


# Schema for returning stock movement details
class MovementResponse(BaseModel):
    id: int
    product_id: int
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    product_unit: Optional[str] = None
    type: MovementType
    quantity: float
    unit: str
    quantity_label: str
    employee_id: Optional[int] = None
    employee_name: Optional[str] = None
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None
    compensation_for_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# Paginated response for stock movement history
class MovementPage(BaseModel):
    items: List[MovementResponse]
    total: int
    page: int
    page_size: int


# Result of a delete; `compensation` is set when an automatic entrada was needed
class MovementDeleteResponse(BaseModel):
    movement: MovementResponse
    compensation: Optional[MovementResponse] = None
    product_quantity: float
