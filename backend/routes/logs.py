# backend/routes/logs.py
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models.log import Log
from models.users import User
from schemas.log import LogOut, LogPage
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/logs", tags=["Logs"])


def serialize_log(entry: Log) -> LogOut:
    out = LogOut.model_validate(entry)
    out.user_email = entry.user.email if entry.user else None
    return out


# Audit trail, newest first (Admin only)
@router.get("", response_model=LogPage)
def list_logs(
    action: Optional[str] = Query(None, description="Ex.: MOVEMENT_DELETE"),
    resource: Optional[str] = Query(None, description="Ex.: movements, products"),
    status: Optional[str] = Query(None, description="SUCCESS / FAIL / PARTIAL"),
    user_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = db.query(Log)
    if action:
        query = query.filter(Log.action == action.upper())
    if resource:
        query = query.filter(Log.resource == resource)
    if status:
        query = query.filter(Log.status == status.upper())
    if user_id is not None:
        query = query.filter(Log.user_id == user_id)
    if date_from:
        query = query.filter(Log.ts >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(Log.ts <= datetime.combine(date_to, time.max))

    total = query.count()
    entries = (
        query.order_by(Log.ts.desc(), Log.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {"items": [serialize_log(e) for e in entries], "total": total, "page": page, "page_size": page_size}
