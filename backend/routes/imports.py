# backend/routes/imports.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.employee import Employee
from models.product import Product
from models.users import User
from services import import_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user
import schemas.imports as import_schemas

router = APIRouter(prefix="/imports", tags=["Imports"])

ALLOWED_EXTENSIONS = (".xlsx", ".xls")


def _read_upload(file: UploadFile) -> bytes:
    filename = (file.filename or "").lower()
    if not filename.endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Formato inválido. Envie um arquivo .xlsx ou .xls")
    try:
        content = file.file.read(settings.IMPORT_MAX_BYTES + 1)
    finally:
        file.file.close()
    if len(content) > settings.IMPORT_MAX_BYTES:
        raise HTTPException(status_code=413, detail=f"Arquivo muito grande (máximo {settings.IMPORT_MAX_BYTES // (1024 * 1024)} MB)")
    return content


def _split_codes(codes: Optional[str]) -> List[str]:
    if not codes:
        return []
    return [c.strip() for c in codes.split(",") if c.strip()]


# =========================
# PRODUCTS
# =========================
@router.post("/products/preview", response_model=import_schemas.ProductPreview)
def preview_products(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = import_service.parse_products(import_service.read_sheet(_read_upload(file)))
    existing = {c for (c,) in db.query(Product.code).filter(Product.code.in_([r.code for r in rows])).all()}
    items = [dict(r.as_dict(), exists=r.code in existing) for r in rows]
    return {"total": len(items), "items": items}


@router.post("/products", response_model=import_schemas.ImportResult)
def import_products(
    request: Request,
    file: UploadFile = File(...),
    category_id: Optional[int] = Form(None),
    codes: Optional[str] = Form(None, description="Códigos selecionados, separados por vírgula"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = import_service.parse_products(import_service.read_sheet(_read_upload(file)))
    stats = import_service.import_products(
        db, rows, category_id, selected_codes=_split_codes(codes), user_id=current_user.id,
    )
    write_log(
        db, user_id=current_user.id, action="IMPORT_PRODUCTS", resource="imports",
        status="SUCCESS" if stats.errors == 0 else "PARTIAL", ip=client_ip(request),
        meta=dict(stats.as_dict(), filename=file.filename, category_id=category_id),
    )
    return stats.as_dict()


# =========================
# EMPLOYEES
# =========================
@router.post("/employees/preview", response_model=import_schemas.EmployeePreview)
def preview_employees(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = import_service.parse_employees(import_service.read_sheet(_read_upload(file)))
    existing = {c for (c,) in db.query(Employee.code).filter(Employee.code.in_([r.code for r in rows])).all()}
    items = [dict(r.as_dict(), exists=r.code in existing) for r in rows]
    return {"total": len(items), "items": items}


@router.post("/employees", response_model=import_schemas.ImportResult)
def import_employees(
    request: Request,
    file: UploadFile = File(...),
    codes: Optional[str] = Form(None, description="Códigos selecionados, separados por vírgula"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = import_service.parse_employees(import_service.read_sheet(_read_upload(file)))
    stats = import_service.import_employees(db, rows, selected_codes=_split_codes(codes))
    write_log(
        db, user_id=current_user.id, action="IMPORT_EMPLOYEES", resource="imports",
        status="SUCCESS" if stats.errors == 0 else "PARTIAL", ip=client_ip(request),
        meta=dict(stats.as_dict(), filename=file.filename),
    )
    return stats.as_dict()
