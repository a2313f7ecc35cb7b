# backend/routes/categories.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.category import Category
from models.product import Product
from models.users import User
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user
import schemas.category as category_schemas

router = APIRouter(prefix="/categories", tags=["Categories"])


def _serialize(db: Session, c: Category) -> dict:
    count = db.query(func.count(Product.id)).filter(Product.category_id == c.id).scalar() or 0
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "created_at": c.created_at,
        "product_count": count,
    }


def _get_or_404(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Categoria não encontrada")
    return category


def _check_name_free(db: Session, name: str, exclude_id: int = None):
    query = db.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Já existe uma categoria com este nome")


@router.get("", response_model=List[category_schemas.CategoryOut])
def list_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    categories = db.query(Category).order_by(Category.name.asc()).all()
    return [_serialize(db, c) for c in categories]


@router.get("/{category_id}", response_model=category_schemas.CategoryOut)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize(db, _get_or_404(db, category_id))


@router.post("", response_model=category_schemas.CategoryOut, status_code=201)
def create_category(
    payload: category_schemas.CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    name = payload.name.strip()
    _check_name_free(db, name)

    category = Category(name=name, description=payload.description)
    db.add(category)
    db.commit()
    db.refresh(category)

    write_log(
        db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
        status="SUCCESS", ip=client_ip(request), meta={"id": category.id, "name": category.name},
    )
    return _serialize(db, category)


@router.patch("/{category_id}", response_model=category_schemas.CategoryOut)
def update_category(
    category_id: int,
    payload: category_schemas.CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = _get_or_404(db, category_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        _check_name_free(db, changes["name"], exclude_id=category.id)
    elif "name" in changes:
        changes.pop("name")

    for field, value in changes.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)

    write_log(
        db, user_id=current_user.id, action="CATEGORY_UPDATE", resource="categories",
        status="SUCCESS", ip=client_ip(request), meta={"id": category.id},
    )
    return _serialize(db, category)


# Products of a deleted category stay, without category
@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = _get_or_404(db, category_id)
    name = category.name
    db.query(Product).filter(Product.category_id == category_id).update(
        {Product.category_id: None}, synchronize_session=False
    )
    db.delete(category)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="CATEGORY_DELETE", resource="categories",
        status="SUCCESS", ip=client_ip(request), meta={"id": category_id, "name": name},
    )
    return {"message": f"Categoria {name} excluída"}
