# backend/services/import_service.py
"""
Spreadsheet import of products and employees.

The sheets come from the shop's legacy system and are read positionally:

    products:  A = code, B = name, E = unit, I = quantity in stock
    employees: A = code, B = name

Header rows are recognised by "código"/"codigo" in column A and skipped,
rows without code or name are dropped.
"""
import io
import logging
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from models.category import Category
from models.employee import Employee, EmployeeStatus
from models.product import Product
from services.errors import CategoryNotFound, ImportFileError
from services.stock_service import create_product, update_product
from utils.units import normalize_unit, parse_decimal

logger = logging.getLogger(__name__)

IMPORT_ADJUSTMENT_NOTE = "Ajuste por importação de planilha"

COL_CODE, COL_NAME, COL_UNIT, COL_QUANTITY = 0, 1, 4, 8


@dataclass
class ProductRow:
    code: str
    name: str
    unit: str
    quantity: float
    min_quantity: float

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class EmployeeRow:
    code: str
    name: str
    status: str = EmployeeStatus.ACTIVE.value

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImportStats:
    total: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def read_sheet(content: bytes) -> pd.DataFrame:
    """First worksheet as a header-less frame of raw cell values."""
    if not content:
        raise ImportFileError("Arquivo vazio")
    try:
        frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
    except Exception as e:
        logger.warning("Could not parse spreadsheet: %s", e)
        raise ImportFileError("Não foi possível processar o arquivo Excel. Verifique o formato.")
    return frame


def _cell(row: pd.Series, index: int):
    if index >= len(row):
        return None
    value = row.iloc[index]
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return value


def _text(value) -> str:
    if value is None:
        return ""
    # Numeric codes come back as floats (1001.0)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_header(row: pd.Series) -> bool:
    first = _text(_cell(row, COL_CODE)).lower()
    return "código" in first or "codigo" in first


def parse_products(frame: pd.DataFrame) -> List[ProductRow]:
    rows: List[ProductRow] = []
    for _, row in frame.iterrows():
        if _is_header(row):
            continue
        code, name = _text(_cell(row, COL_CODE)), _text(_cell(row, COL_NAME))
        if not code or not name:
            continue
        unit = _text(_cell(row, COL_UNIT)) or "UN"
        quantity = max(parse_decimal(_cell(row, COL_QUANTITY)), 0.0)
        # Products out of stock keep a zero minimum
        min_quantity = round(quantity * 0.2) if quantity > 0 else 0
        rows.append(ProductRow(code=code, name=name, unit=unit, quantity=quantity, min_quantity=min_quantity))
    logger.info("Parsed %s product rows from spreadsheet", len(rows))
    return rows


def parse_employees(frame: pd.DataFrame) -> List[EmployeeRow]:
    rows: List[EmployeeRow] = []
    for _, row in frame.iterrows():
        if _is_header(row):
            continue
        code, name = _text(_cell(row, COL_CODE)), _text(_cell(row, COL_NAME))
        if not code or not name:
            continue
        rows.append(EmployeeRow(code=code, name=name))
    logger.info("Parsed %s employee rows from spreadsheet", len(rows))
    return rows


def _selected(rows: Iterable, codes: Optional[Iterable[str]]):
    if not codes:
        return list(rows)
    wanted = {c.strip() for c in codes}
    return [r for r in rows if r.code in wanted]


def import_products(
    db: Session,
    rows: List[ProductRow],
    category_id: Optional[int],
    selected_codes: Optional[Iterable[str]] = None,
    user_id: Optional[int] = None,
) -> ImportStats:
    """
    Create new codes, update existing ones. Stock changes on existing products
    are recorded as adjustment movements so the stock history stays consistent.
    """
    if category_id is not None and not db.query(Category).filter(Category.id == category_id).first():
        raise CategoryNotFound("Categoria não encontrada")

    chosen = _selected(rows, selected_codes)
    stats = ImportStats(total=len(chosen))

    for item in chosen:
        try:
            existing = db.query(Product).filter(Product.code == item.code).first()
            if existing is None:
                create_product(
                    db, code=item.code, name=item.name, unit=item.unit,
                    quantity=item.quantity, min_quantity=item.min_quantity,
                    category_id=category_id, commit=False,
                )
                db.commit()
                stats.added += 1
                continue

            changes = {}
            if existing.name != item.name:
                changes["name"] = item.name
            if normalize_unit(existing.unit) != normalize_unit(item.unit):
                changes["unit"] = item.unit
            if existing.min_quantity != item.min_quantity:
                changes["min_quantity"] = item.min_quantity
            if existing.category_id != category_id:
                changes["category_id"] = category_id
            if abs((existing.quantity or 0) - item.quantity) > 1e-9:
                changes["quantity"] = item.quantity

            if not changes:
                stats.skipped += 1
                continue

            update_product(db, existing, changes, user_id=user_id, adjustment_note=IMPORT_ADJUSTMENT_NOTE)
            stats.updated += 1
        except Exception:
            db.rollback()
            logger.exception("Failed to import product %s", item.code)
            stats.errors += 1

    logger.info("Product import finished: %s", stats.as_dict())
    return stats


def import_employees(
    db: Session,
    rows: List[EmployeeRow],
    selected_codes: Optional[Iterable[str]] = None,
) -> ImportStats:
    chosen = _selected(rows, selected_codes)
    stats = ImportStats(total=len(chosen))

    for item in chosen:
        try:
            existing = db.query(Employee).filter(Employee.code == item.code).first()
            if existing is None:
                db.add(Employee(code=item.code, name=item.name, status=EmployeeStatus(item.status)))
                db.commit()
                stats.added += 1
            elif existing.name == item.name and existing.status == EmployeeStatus(item.status):
                stats.skipped += 1
            else:
                existing.name = item.name
                existing.status = EmployeeStatus(item.status)
                db.commit()
                stats.updated += 1
        except Exception:
            db.rollback()
            logger.exception("Failed to import employee %s", item.code)
            stats.errors += 1

    logger.info("Employee import finished: %s", stats.as_dict())
    return stats
