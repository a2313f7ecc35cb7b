# backend/routes/admin.py
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.user import RoleUpdate, UserPage
from utils.audit import client_ip, write_log
from utils.tokenJWT import ROLE_ADMIN, require_admin

router = APIRouter(prefix="/users", tags=["Admin"])

USER_SORT_COLUMNS = {
    "id": User.id,
    "email": User.email,
    "role": User.role,
    "first_name": User.first_name,
    "last_name": User.last_name,
}


def _user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado")
    return user


@router.get("", response_model=UserPage)
def list_users(
    q: Optional[str] = Query(None, description="E-mail, nome ou sobrenome"),
    role: Optional[Literal["admin", "user"]] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    sort_by: Literal["id", "email", "role", "first_name", "last_name"] = "id",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = db.query(User)
    if q:
        term = f"%{q.strip()}%"
        query = query.filter(or_(User.email.ilike(term), User.first_name.ilike(term), User.last_name.ilike(term)))
    if role:
        query = query.filter(User.role == role)

    column = USER_SORT_COLUMNS[sort_by]
    total = query.count()
    users = (
        query.order_by(column.desc() if order == "desc" else column.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {"items": users, "total": total, "page": page, "page_size": page_size}


@router.put("/{user_id}/role")
def change_role(
    user_id: int,
    payload: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    target = _user_or_404(db, user_id)
    # At least one admin must remain: the caller keeps their own role
    if target.id == current_user.id and payload.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Não é possível alterar o próprio perfil")

    previous = target.role
    target.role = payload.role
    db.commit()

    write_log(
        db, user_id=current_user.id, action="ROLE_UPDATE", resource="users", status="SUCCESS",
        ip=client_ip(request), meta={"target_id": target.id, "from": previous, "to": target.role},
    )
    return {"id": target.id, "email": target.email, "role": target.role}


@router.delete("/{user_id}")
def remove_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    target = _user_or_404(db, user_id)
    if target.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Não é possível excluir a própria conta")

    email = target.email
    db.delete(target)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="USER_DELETE", resource="users", status="SUCCESS",
        ip=client_ip(request), meta={"target_id": user_id, "email": email},
    )
    return {"message": f"Usuário {email} excluído"}
