# backend/schemas/imports.py
from typing import List

from pydantic import BaseModel


class ProductRowOut(BaseModel):
    code: str
    name: str
    unit: str
    quantity: float
    min_quantity: float
    exists: bool = False


class EmployeeRowOut(BaseModel):
    code: str
    name: str
    status: str
    exists: bool = False


class ProductPreview(BaseModel):
    total: int
    items: List[ProductRowOut]


class EmployeePreview(BaseModel):
    total: int
    items: List[EmployeeRowOut]


class ImportResult(BaseModel):
    total: int
    added: int
    updated: int
    skipped: int
    errors: int
