# routes/reports.py
from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from database import get_db
from utils.tokenJWT import get_current_user
from utils.units import format_unit
from models.users import User
from models.product import Product
from services import report_service
from schemas.reports import (
    LowStockPage, LowStockItem,
    EmployeeOutputsResponse, MovementSummaryResponse,
)

router = APIRouter(prefix="/reports", tags=["Reports"])


def _period_range(period: str, date_from: Optional[date], date_to: Optional[date]):
    try:
        return report_service.resolve_period(period, date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# -----------------------------
# 1) Low stock
# -----------------------------
@router.get("/low-stock", response_model=LowStockPage)
def report_low_stock(
    q: Optional[str] = Query(None, description="Busca por nome/código"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = report_service.low_stock_query(db, q).options(joinedload(Product.category))

    total = query.count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()

    items: List[LowStockItem] = [
        LowStockItem(
            product_id=p.id,
            name=p.name,
            code=p.code,
            quantity=p.quantity or 0,
            min_quantity=p.min_quantity or 0,
            unit=format_unit(p.unit),
            category_name=p.category.name if p.category else None,
        )
        for p in rows
    ]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# -----------------------------
# 2) Stock-outs per employee
# -----------------------------
@router.get("/employee-outputs", response_model=EmployeeOutputsResponse)
def report_employee_outputs(
    period: str = Query("last30Days", description="|".join(report_service.PERIODS)),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    employee_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    start, end = _period_range(period, date_from, date_to)
    items = report_service.employee_outputs(db, start, end, employee_id=employee_id)
    return {"period": period, "date_from": start, "date_to": end, "items": items}


# -----------------------------
# 3) Movement summary
# -----------------------------
@router.get("/movements-summary", response_model=MovementSummaryResponse)
def report_movements_summary(
    period: str = Query("last30Days", description="|".join(report_service.PERIODS)),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    start, end = _period_range(period, date_from, date_to)
    return report_service.movement_summary(db, start, end)
