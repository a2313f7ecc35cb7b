# backend/routes/employees.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.employee import Employee, EmployeeStatus
from models.movement import Movement
from models.users import User
from services.stock_service import norm_code
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user
import schemas.employee as employee_schemas

router = APIRouter(prefix="/employees", tags=["Employees"])


def _get_or_404(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(status_code=404, detail="Colaborador não encontrado")
    return employee


def _check_code_free(db: Session, code: str, exclude_id: Optional[int] = None):
    query = db.query(Employee).filter(Employee.code == code)
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Já existe um colaborador com este código")


@router.get("", response_model=employee_schemas.EmployeePage)
def list_employees(
    q: Optional[str] = Query(None, description="Busca por nome ou código"),
    status: Optional[EmployeeStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Employee)
    if q:
        like = f"%{q}%"
        query = query.filter((Employee.name.ilike(like)) | (Employee.code.ilike(like)))
    if status is not None:
        query = query.filter(Employee.status == status)

    query = query.order_by(Employee.name.asc(), Employee.id.asc())
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()

    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{employee_id}", response_model=employee_schemas.EmployeeOut)
def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_or_404(db, employee_id)


@router.post("", response_model=employee_schemas.EmployeeOut, status_code=201)
def create_employee(
    payload: employee_schemas.EmployeeCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    code = norm_code(payload.code)
    if not code:
        raise HTTPException(status_code=422, detail="Código é obrigatório")
    _check_code_free(db, code)

    employee = Employee(code=code, name=payload.name.strip(), status=payload.status)
    db.add(employee)
    db.commit()
    db.refresh(employee)

    write_log(
        db, user_id=current_user.id, action="EMPLOYEE_CREATE", resource="employees",
        status="SUCCESS", ip=client_ip(request), meta={"id": employee.id, "code": employee.code},
    )
    return employee


@router.patch("/{employee_id}", response_model=employee_schemas.EmployeeOut)
def update_employee(
    employee_id: int,
    payload: employee_schemas.EmployeeUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    employee = _get_or_404(db, employee_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "code" in changes:
        changes["code"] = norm_code(changes["code"])
        if not changes["code"]:
            raise HTTPException(status_code=422, detail="Código é obrigatório")
        _check_code_free(db, changes["code"], exclude_id=employee.id)
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(employee, field, value)
    db.commit()
    db.refresh(employee)

    write_log(
        db, user_id=current_user.id, action="EMPLOYEE_UPDATE", resource="employees",
        status="SUCCESS", ip=client_ip(request), meta={"id": employee.id, "fields": sorted(changes)},
    )
    return employee


# Movements keep their history; the employee reference is cleared
@router.delete("/{employee_id}")
def delete_employee(
    employee_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    employee = _get_or_404(db, employee_id)
    code = employee.code
    db.query(Movement).filter(Movement.employee_id == employee_id).update(
        {Movement.employee_id: None}, synchronize_session=False
    )
    db.delete(employee)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="EMPLOYEE_DELETE", resource="employees",
        status="SUCCESS", ip=client_ip(request), meta={"id": employee_id, "code": code},
    )
    return {"message": f"Colaborador {code} excluído"}
