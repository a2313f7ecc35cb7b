# backend/schemas/integrity.py
from typing import List, Optional

from pydantic import BaseModel


class StockCheckOut(BaseModel):
    product_id: int
    code: str
    name: str
    unit: str
    current: float
    calculated: float
    difference: float
    consistent: bool
    movements: int


class StockCheckReport(BaseModel):
    total: int
    inconsistent: int
    items: List[StockCheckOut]


class StockFixResult(BaseModel):
    fixed: int
    remaining: int


class CompensationCheckOut(BaseModel):
    compensation_id: int
    product_id: int
    original_id: Optional[int] = None
    original_deleted: Optional[bool] = None
    consistent: bool


class CompensationReport(BaseModel):
    total: int
    inconsistent: int
    items: List[CompensationCheckOut]
