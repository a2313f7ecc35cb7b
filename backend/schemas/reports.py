# schemas/reports.py
from datetime import datetime, date
from typing import List, Optional
from pydantic import BaseModel

# Schemas for low stock alerting
class LowStockItem(BaseModel):
    product_id: int
    name: str
    code: str
    quantity: float
    min_quantity: float
    unit: str
    category_name: Optional[str] = None

class LowStockPage(BaseModel):
    items: List[LowStockItem]
    total: int
    page: int
    page_size: int

# Schemas for stock-outs per employee
class EmployeeOutputLine(BaseModel):
    product_id: int
    product_code: str
    product_name: str
    quantity: float
    unit: str
    category_id: Optional[int] = None
    category_name: str

class EmployeeOutputs(BaseModel):
    employee_id: int
    employee_code: str
    employee_name: str
    products: List[EmployeeOutputLine]
    total_quantity: float

class EmployeeOutputsResponse(BaseModel):
    period: str
    date_from: datetime
    date_to: datetime
    items: List[EmployeeOutputs]

# Schemas for movement activity summaries
class MovementSummaryDay(BaseModel):
    date: date
    entradas: int
    saidas: int

class MovementSummaryProduct(BaseModel):
    product_id: int
    product_code: str
    product_name: str
    unit: str
    entradas: float
    saidas: float

class MovementSummaryResponse(BaseModel):
    items: List[MovementSummaryDay]
    products: List[MovementSummaryProduct]
    total_entradas: int
    total_saidas: int
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

# Dashboard counters
class StatsSummary(BaseModel):
    total_products: int
    total_categories: int
    active_employees: int
    low_stock_products: int
    out_of_stock_products: int
    entradas_today: int
    saidas_today: int
