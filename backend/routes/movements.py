# backend/routes/movements.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.movement import Movement, MovementType
from models.users import User
from services import stock_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user
from utils.units import format_quantity, format_unit
import schemas.movement as movement_schemas

router = APIRouter(prefix="/movements", tags=["Movements"])


def serialize_movement(m: Movement) -> dict:
    product = m.product
    return {
        "id": m.id,
        "product_id": m.product_id,
        "product_code": product.code if product else None,
        "product_name": product.name if product else None,
        "product_unit": product.unit if product else None,
        "type": m.type,
        "quantity": m.quantity,
        "unit": m.unit,
        "quantity_label": f"{format_quantity(m.quantity, m.unit)} {format_unit(m.unit)}",
        "employee_id": m.employee_id,
        "employee_name": m.employee.name if m.employee else None,
        "user_id": m.user_id,
        "user_email": m.user.email if m.user else None,
        "notes": m.notes,
        "created_at": m.created_at,
        "deleted": bool(m.deleted),
        "deleted_at": m.deleted_at,
        "compensation_for_id": m.compensation_for_id,
    }


def _parse_date(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    if not value:
        return None
    s = value
    if end_of_day and len(s) == 10:  # YYYY-MM-DD
        s += " 23:59:59"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Bad datetime format: {value}")


@router.get("", response_model=movement_schemas.MovementPage)
def list_movements(
    product_id: Optional[int] = Query(None),
    type: Optional[MovementType] = Query(None),
    employee_id: Optional[int] = Query(None),
    include_deleted: bool = Query(False),
    date_from: Optional[str] = Query(None, description="Data inicial (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="Data final (YYYY-MM-DD)"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Movement).options(
        joinedload(Movement.product),
        joinedload(Movement.employee),
        joinedload(Movement.user),
    )

    if product_id is not None:
        query = query.filter(Movement.product_id == product_id)
    if type is not None:
        query = query.filter(Movement.type == type)
    if employee_id is not None:
        query = query.filter(Movement.employee_id == employee_id)
    if not include_deleted:
        query = query.filter(Movement.deleted.is_(False))

    dt_from = _parse_date(date_from)
    dt_to = _parse_date(date_to, end_of_day=True)
    if dt_from:
        query = query.filter(Movement.created_at >= dt_from)
    if dt_to:
        query = query.filter(Movement.created_at <= dt_to)

    if order == "desc":
        query = query.order_by(Movement.created_at.desc(), Movement.id.desc())
    else:
        query = query.order_by(Movement.created_at.asc(), Movement.id.asc())

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": [serialize_movement(m) for m in items],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/{movement_id}", response_model=movement_schemas.MovementResponse)
def get_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    movement = db.query(Movement).filter(Movement.id == movement_id).first()
    if not movement:
        raise HTTPException(status_code=404, detail="Movimentação não encontrada")
    return serialize_movement(movement)


@router.post("", response_model=movement_schemas.MovementResponse, status_code=201)
def create_movement(
    payload: movement_schemas.MovementCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    movement = stock_service.register_movement(
        db,
        product_id=payload.product_id,
        type=payload.type,
        quantity=payload.quantity,
        unit=payload.unit,
        employee_id=payload.employee_id,
        notes=payload.notes,
        user_id=current_user.id,
    )
    write_log(
        db, user_id=current_user.id, action="MOVEMENT_CREATE", resource="movements",
        status="SUCCESS", ip=client_ip(request),
        meta={"id": movement.id, "product_id": movement.product_id, "type": payload.type.value,
              "quantity": movement.quantity, "unit": movement.unit},
    )
    return serialize_movement(movement)


@router.patch("/{movement_id}", response_model=movement_schemas.MovementResponse)
def update_movement(
    movement_id: int,
    payload: movement_schemas.MovementUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    for field in ("type", "quantity"):
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"Campo '{field}' não pode ser nulo")
    movement = stock_service.edit_movement(db, movement_id, changes, user_id=current_user.id)
    write_log(
        db, user_id=current_user.id, action="MOVEMENT_UPDATE", resource="movements",
        status="SUCCESS", ip=client_ip(request),
        meta={"id": movement.id, "fields": sorted(changes)},
    )
    return serialize_movement(movement)


@router.delete("/{movement_id}", response_model=movement_schemas.MovementDeleteResponse)
def delete_movement(
    movement_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    movement, compensation = stock_service.delete_movement(db, movement_id, user_id=current_user.id)
    write_log(
        db, user_id=current_user.id, action="MOVEMENT_DELETE", resource="movements",
        status="SUCCESS", ip=client_ip(request),
        meta={"id": movement.id, "compensation_id": compensation.id if compensation else None},
    )
    return {
        "movement": serialize_movement(movement),
        "compensation": serialize_movement(compensation) if compensation else None,
        "product_quantity": movement.product.quantity,
    }
