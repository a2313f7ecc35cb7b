# backend/routes/integrity.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from services import integrity_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import require_admin
import schemas.integrity as integrity_schemas

router = APIRouter(prefix="/integrity", tags=["Integrity"])


@router.get("/stock", response_model=integrity_schemas.StockCheckReport)
def check_stock(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    checks = integrity_service.check_all(db)
    return {
        "total": len(checks),
        "inconsistent": sum(1 for c in checks if not c.consistent),
        "items": [c.as_dict() for c in checks],
    }


@router.post("/stock/fix", response_model=integrity_schemas.StockFixResult)
def fix_stock(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    checks = integrity_service.check_all(db)
    fixed = integrity_service.fix_inconsistencies(db, checks)
    remaining = sum(1 for c in integrity_service.check_all(db) if not c.consistent)

    write_log(
        db, user_id=current_user.id, action="STOCK_FIX", resource="integrity",
        status="SUCCESS" if remaining == 0 else "PARTIAL", ip=client_ip(request),
        meta={"fixed": fixed, "remaining": remaining},
    )
    return {"fixed": fixed, "remaining": remaining}


@router.get("/compensations", response_model=integrity_schemas.CompensationReport)
def check_compensations(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    results = integrity_service.verify_compensations(db)
    return {
        "total": len(results),
        "inconsistent": sum(1 for r in results if not r.consistent),
        "items": [r.as_dict() for r in results],
    }
