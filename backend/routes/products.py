# backend/routes/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.category import Category
from models.product import Product
from models.users import User
from services import stock_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user
from utils.units import format_quantity, format_unit, related_units
import schemas.product as product_schemas

router = APIRouter(prefix="/products", tags=["Products"])


# ---- HELPERS ----
def serialize_product(p: Product) -> dict:
    return {
        "id": p.id,
        "code": p.code,
        "name": p.name,
        "description": p.description,
        "unit": p.unit,
        "quantity": p.quantity,
        "initial_quantity": p.initial_quantity,
        "min_quantity": p.min_quantity,
        "category_id": p.category_id,
        "category_name": p.category.name if p.category else None,
        "unit_label": format_unit(p.unit),
        "quantity_label": f"{format_quantity(p.quantity, p.unit)} {format_unit(p.unit)}",
        "related_units": related_units(p.unit),
        "low_stock": (p.quantity or 0) <= (p.min_quantity or 0),
        "created_at": p.created_at,
    }


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return product


def _check_category(db: Session, category_id: Optional[int]):
    if category_id is not None and not db.query(Category).filter(Category.id == category_id).first():
        raise HTTPException(status_code=404, detail="Categoria não encontrada")


def _check_code_free(db: Session, code: Optional[str], exclude_id: Optional[int] = None):
    query = db.query(Product).filter(Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Já existe um produto com este código")


# =========================
# PRODUCT LIST
# =========================
@router.get("", response_model=product_schemas.ProductListPage)
def list_products(
    name: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    low_stock: bool = Query(False, description="Somente produtos no mínimo ou abaixo"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=1000),
    sort_by: str = Query("name"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Product).options(joinedload(Product.category))

    if name:
        query = query.filter(Product.name.ilike(f"%{name}%"))
    if code:
        query = query.filter(Product.code.ilike(f"%{code}%"))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if low_stock:
        query = query.filter(Product.quantity <= Product.min_quantity)

    sort_map = {
        "id": Product.id,
        "code": Product.code,
        "name": Product.name,
        "quantity": Product.quantity,
        "created_at": Product.created_at,
    }
    col = sort_map.get(sort_by.lower(), Product.name)
    query = query.order_by(col.asc() if order == "asc" else col.desc(), Product.id.asc())

    total = query.count()
    items: List[Product] = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": [serialize_product(p) for p in items],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/{product_id}", response_model=product_schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return serialize_product(_get_product_or_404(db, product_id))


@router.post("", response_model=product_schemas.ProductOut, status_code=201)
def add_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    code = stock_service.norm_code(payload.code)
    _check_code_free(db, code)
    _check_category(db, payload.category_id)

    product = stock_service.create_product(
        db,
        code=code,
        name=payload.name,
        unit=payload.unit,
        quantity=payload.quantity,
        min_quantity=payload.min_quantity,
        description=payload.description,
        category_id=payload.category_id,
    )
    write_log(
        db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
        status="SUCCESS", ip=client_ip(request), meta={"id": product.id, "code": product.code},
    )
    return serialize_product(product)


@router.patch("/{product_id}", response_model=product_schemas.ProductOut)
def edit_product(
    product_id: int,
    payload: product_schemas.ProductEditRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = _get_product_or_404(db, product_id)
    changes = payload.model_dump(exclude_unset=True)

    if "code" in changes:
        changes["code"] = stock_service.norm_code(changes["code"])
        if changes["code"] != product.code:
            _check_code_free(db, changes["code"], exclude_id=product.id)
    if "category_id" in changes:
        _check_category(db, changes["category_id"])
    for field in ("code", "name", "unit", "min_quantity"):
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"Campo '{field}' não pode ser nulo")

    product = stock_service.update_product(db, product, changes, user_id=current_user.id)
    write_log(
        db, user_id=current_user.id, action="PRODUCT_EDIT", resource="products",
        status="SUCCESS", ip=client_ip(request), meta={"id": product.id, "fields": sorted(changes)},
    )
    return serialize_product(product)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = _get_product_or_404(db, product_id)
    code = product.code
    db.delete(product)
    db.commit()
    write_log(
        db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
        status="SUCCESS", ip=client_ip(request), meta={"id": product_id, "code": code},
    )
    return {"message": f"Produto {code} excluído"}
