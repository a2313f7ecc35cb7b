# backend/services/report_service.py
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session, joinedload

from config import settings
from models.category import Category
from models.employee import Employee, EmployeeStatus
from models.movement import Movement, MovementType
from models.product import Product
from utils.units import UnitConversionError, convert_quantity, format_unit

logger = logging.getLogger(__name__)

PERIODS = (
    "today", "yesterday", "thisWeek", "lastWeek", "thisMonth",
    "lastMonth", "last30Days", "custom", "specificDate",
)

NO_CATEGORY = "Sem categoria"


def report_timezone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def _start(d: date, tz: tzinfo) -> datetime:
    return datetime.combine(d, time.min, tzinfo=tz).astimezone(timezone.utc)


def _end(d: date, tz: tzinfo) -> datetime:
    return datetime.combine(d, time.max, tzinfo=tz).astimezone(timezone.utc)


def _local_date(ts: datetime, tz: tzinfo) -> date:
    # SQLite hands back the UTC wall clock without tzinfo
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz).date()


def resolve_period(
    period: str = "last30Days",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> Tuple[datetime, datetime]:
    """
    Turn a named period (as offered by the report filters) into an inclusive range.

    Days are counted in `tz` (settings.TIMEZONE by default); the bounds come back
    as UTC-aware datetimes, the clock movement timestamps are written in.
    """
    tz = tz or report_timezone()
    today = today or datetime.now(tz).date()

    def _range(first: date, last: date) -> Tuple[datetime, datetime]:
        return _start(first, tz), _end(last, tz)

    if period == "custom":
        if not date_from or not date_to:
            raise ValueError("custom period needs date_from and date_to")
        if date_from > date_to:
            raise ValueError("date_from must not be after date_to")
        return _range(date_from, date_to)
    if period == "specificDate":
        if not date_from:
            raise ValueError("specificDate period needs date_from")
        return _range(date_from, date_from)
    if period == "today":
        return _range(today, today)
    if period == "yesterday":
        y = today - timedelta(days=1)
        return _range(y, y)
    if period == "thisWeek":
        monday = today - timedelta(days=today.weekday())
        return _range(monday, today)
    if period == "lastWeek":
        monday = today - timedelta(days=today.weekday() + 7)
        return _range(monday, monday + timedelta(days=6))
    if period == "thisMonth":
        return _range(today.replace(day=1), today)
    if period == "lastMonth":
        last_day = today.replace(day=1) - timedelta(days=1)
        return _range(last_day.replace(day=1), last_day)
    if period == "last30Days":
        return _range(today - timedelta(days=29), today)
    raise ValueError(f"unknown period: {period}")


def _in_product_unit(movement: Movement, product: Product) -> float:
    try:
        return convert_quantity(movement.quantity, movement.unit, product.unit)
    except UnitConversionError:
        logger.warning("Movement %s unit %s does not convert to %s", movement.id, movement.unit, product.unit)
        return movement.quantity


def employee_outputs(
    db: Session,
    start: datetime,
    end: datetime,
    employee_id: Optional[int] = None,
) -> List[dict]:
    """
    Stock-outs per employee in a period, consolidated per product.

    The same product code in two categories is reported as two lines. Products
    are ordered by category name and then code, employees by name.
    """
    query = (
        db.query(Movement)
        .options(
            joinedload(Movement.product).joinedload(Product.category),
            joinedload(Movement.employee),
        )
        .filter(
            Movement.type == MovementType.SAIDA,
            Movement.deleted.is_(False),
            Movement.employee_id.isnot(None),
            Movement.created_at >= start,
            Movement.created_at <= end,
        )
    )
    if employee_id is not None:
        query = query.filter(Movement.employee_id == employee_id)

    per_employee: Dict[int, Dict[tuple, dict]] = defaultdict(dict)
    employees: Dict[int, Employee] = {}

    for m in query.all():
        product = m.product
        employees[m.employee_id] = m.employee
        key = (product.code, product.category_id)
        line = per_employee[m.employee_id].get(key)
        if line is None:
            line = per_employee[m.employee_id][key] = {
                "product_id": product.id,
                "product_code": product.code,
                "product_name": product.name,
                "quantity": 0.0,
                "unit": format_unit(product.unit or "un"),
                "category_id": product.category_id,
                "category_name": product.category.name if product.category else NO_CATEGORY,
            }
        line["quantity"] = round(line["quantity"] + _in_product_unit(m, product), 6)

    report = []
    for emp_id, lines in per_employee.items():
        products = sorted(lines.values(), key=lambda l: (l["category_name"], l["product_code"]))
        employee = employees[emp_id]
        report.append({
            "employee_id": emp_id,
            "employee_code": employee.code,
            "employee_name": employee.name,
            "products": products,
            "total_quantity": round(sum(l["quantity"] for l in products), 6),
        })
    report.sort(key=lambda r: r["employee_name"])
    return report


def movement_summary(db: Session, start: datetime, end: datetime, tz: Optional[tzinfo] = None) -> dict:
    """Daily entrada/saída counts and per-product totals (in the product unit) for a period."""
    tz = tz or report_timezone()
    movements = (
        db.query(Movement)
        .options(joinedload(Movement.product))
        .filter(
            Movement.deleted.is_(False),
            Movement.created_at >= start,
            Movement.created_at <= end,
        )
        .order_by(Movement.created_at.asc())
        .all()
    )

    days: Dict[date, dict] = {}
    products: Dict[int, dict] = {}
    for m in movements:
        day = _local_date(m.created_at, tz)
        bucket = days.setdefault(day, {"date": day, "entradas": 0, "saidas": 0})
        per_product = products.setdefault(m.product_id, {
            "product_id": m.product_id,
            "product_code": m.product.code,
            "product_name": m.product.name,
            "unit": format_unit(m.product.unit),
            "entradas": 0.0,
            "saidas": 0.0,
        })
        qty = _in_product_unit(m, m.product)
        if MovementType(m.type) == MovementType.ENTRADA:
            bucket["entradas"] += 1
            per_product["entradas"] = round(per_product["entradas"] + qty, 6)
        else:
            bucket["saidas"] += 1
            per_product["saidas"] = round(per_product["saidas"] + qty, 6)

    items = [days[d] for d in sorted(days)]
    return {
        "items": items,
        "products": sorted(products.values(), key=lambda p: p["product_code"]),
        "total_entradas": sum(i["entradas"] for i in items),
        "total_saidas": sum(i["saidas"] for i in items),
        "date_from": start,
        "date_to": end,
    }


def low_stock_query(db: Session, q: Optional[str] = None):
    query = db.query(Product).filter(Product.quantity <= Product.min_quantity)
    if q:
        like = f"%{q}%"
        query = query.filter((Product.name.ilike(like)) | (Product.code.ilike(like)))
    return query.order_by(Product.quantity.asc(), Product.name.asc())


def dashboard(db: Session, today: Optional[date] = None, tz: Optional[tzinfo] = None) -> dict:
    start, end = resolve_period("today", today=today, tz=tz)

    def _count_today(movement_type: MovementType) -> int:
        return db.query(Movement).filter(
            Movement.type == movement_type,
            Movement.deleted.is_(False),
            Movement.created_at >= start,
            Movement.created_at <= end,
        ).count()

    return {
        "total_products": db.query(Product).count(),
        "total_categories": db.query(Category).count(),
        "active_employees": db.query(Employee).filter(Employee.status == EmployeeStatus.ACTIVE).count(),
        "low_stock_products": low_stock_query(db).count(),
        "out_of_stock_products": db.query(Product).filter(Product.quantity <= 0).count(),
        "entradas_today": _count_today(MovementType.ENTRADA),
        "saidas_today": _count_today(MovementType.SAIDA),
    }
